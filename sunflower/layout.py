"""Phyllotactic placement of petal, sepal and leaf instances.

Within a ring instances are evenly spaced; each ring is rotated by a further
golden angle so petals of consecutive rings never line up radially.
"""

import math
from dataclasses import dataclass

from sunflower.config import TierConfig
from sunflower.variation import seed

GOLDEN_ANGLE = math.pi * (3.0 - math.sqrt(5.0))  # ~137.508 degrees

# Sway desynchronisation: time_offset = i * step + ring
TIME_STEP_BASE = 0.2
TIME_STEP_PER_RING = 0.05
TIME_STEP_MIN = 0.05

SEPAL_RING_RADIUS = 0.26
# Sepals hash on their own ring ids so they never share a petal's seed
SEPAL_SEED_RING = -1
LEAF_SEED_RING = -2

LEAF_HEIGHT_TOP = -1.2
LEAF_HEIGHT_SPACING = 0.8


@dataclass(frozen=True)
class InstanceDescriptor:
    """Placement and shape variation of one petal or sepal."""

    index: int
    ring_index: int
    count_in_ring: int
    ring_radius: float
    angular_offset: float  # radians around the flower axis
    time_offset: float  # seconds added to the sway clock
    seed: float


@dataclass(frozen=True)
class LeafDescriptor:
    index: int
    side: int  # +1 right, -1 left
    height: float  # y position on the stem
    seed: float


def ring_offset(ring: int) -> float:
    return ring * GOLDEN_ANGLE


def ring_time_step(ring: int) -> float:
    return max(TIME_STEP_MIN, TIME_STEP_BASE - ring * TIME_STEP_PER_RING)


def instance_angle(index: int, count: int, ring: int) -> float:
    return (index / count) * 2.0 * math.pi + ring_offset(ring)


def layout_rings(tier: TierConfig) -> list[InstanceDescriptor]:
    """Descriptors for every petal, inner ring first."""
    descriptors = []
    for ring, (count, radius) in enumerate(zip(tier.instance_counts_per_ring, tier.ring_radii)):
        step = ring_time_step(ring)
        for i in range(count):
            descriptors.append(InstanceDescriptor(
                index=i,
                ring_index=ring,
                count_in_ring=count,
                ring_radius=radius,
                angular_offset=instance_angle(i, count, ring),
                time_offset=i * step + ring,
                seed=seed(i, ring),
            ))
    return descriptors


def layout_sepals(tier: TierConfig) -> list[InstanceDescriptor]:
    """One ring of sepals under the petals, offset by half a golden angle."""
    count = tier.sepal_count
    descriptors = []
    for i in range(count):
        descriptors.append(InstanceDescriptor(
            index=i,
            ring_index=0,
            count_in_ring=count,
            ring_radius=SEPAL_RING_RADIUS,
            angular_offset=(i / count) * 2.0 * math.pi + GOLDEN_ANGLE * 0.5,
            time_offset=i * TIME_STEP_BASE,
            seed=seed(i, SEPAL_SEED_RING),
        ))
    return descriptors


def layout_leaves(tier: TierConfig) -> list[LeafDescriptor]:
    """Leaves alternate sides going down the stem from just below the head."""
    leaves = []
    for i in range(tier.leaf_count):
        leaves.append(LeafDescriptor(
            index=i,
            side=1 if i % 2 == 0 else -1,
            height=LEAF_HEIGHT_TOP - i * LEAF_HEIGHT_SPACING,
            seed=seed(i, LEAF_SEED_RING),
        ))
    return leaves

"""Deterministic per-instance variation.

A sine hash gives every (index, ring) pair its own reproducible value, so
two builds of the same flower are identical down to each petal's droop.
"""

import math

_INDEX_MULTIPLIER = 12.9898
_RING_MULTIPLIER = 78.233
_HASH_SCALE = 43758.5453

# Index stride separating independent variation channels for one instance
_CHANNEL_STRIDE = 101


def seed(index: int, ring: int) -> float:
    """Return a value in [0, 1) determined only by (index, ring)."""
    h = math.sin(index * _INDEX_MULTIPLIER + ring * _RING_MULTIPLIER) * _HASH_SCALE
    value = h - math.floor(h)
    # h - floor(h) rounds up to 1.0 for tiny negative h
    return value if value < 1.0 else 0.0


def jitter(index: int, ring: int, channel: int, amplitude: float) -> float:
    """Centred variation in [-amplitude/2, amplitude/2) from an independent channel."""
    return (seed(index + channel * _CHANNEL_STRIDE, ring) - 0.5) * amplitude

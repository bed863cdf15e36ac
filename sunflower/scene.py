"""Flower assembly: builds every mesh once and animates node transforms.

Transform hierarchy (composed at read time, never baked into geometry):

    flower (yaw tracks the bearing)
      tilt (leans the whole plant toward the viewer)
        head
          sepals -> sepal pivot -> sepal mesh
          ring_<r> -> petal pivot -> petal mesh
          disc_spin -> disc, disc_dome
        stem
        leaf_group_<i> -> leaf_<i> -> leaf_vein_<i>
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from sunflower.animation import (
    DEFAULT_HEARTBEAT,
    DEFAULT_ROTATION,
    DEFAULT_SWAY,
    AnimationState,
    FrameInputs,
    HeartbeatParams,
    HeartbeatState,
    InstancePose,
    RotationParams,
    RotationTrackerState,
    SwayParams,
    base_tilt,
    disc_yaw,
    known,
    leaf_roll,
    update_heartbeat,
    update_instance,
    update_rotation,
)
from sunflower.config import CapabilityTier, TierConfig, select_tier
from sunflower.extrude import LEAF_DEFORM, PETAL_DEFORM, SEPAL_DEFORM, extrude_and_deform
from sunflower.layout import layout_leaves, layout_rings, layout_sepals
from sunflower.mesh import Mesh, merge_meshes, transform_mesh
from sunflower.outline import build_leaf_outline, build_petal_outline, build_sepal_outline
from sunflower.primitives import build_disc, build_disc_dome, build_leaf_vein
from sunflower.stem import Spline, build_stem_result, default_stem_spline
from sunflower.variation import jitter

logger = logging.getLogger(__name__)

PETAL_DEPTH = 0.008
SEPAL_DEPTH = 0.006
LEAF_DEPTH = 0.004

PETAL_BASE_LENGTH = 0.75
PETAL_LENGTH_PER_RING = 0.22
PETAL_HEIGHT = 0.02
SEPAL_LENGTH = 0.35
SEPAL_HEIGHT = -0.03
SEPAL_TILT = -(math.pi / 2.0) - 0.35
LEAF_SCALE = 0.6
LEAF_SPREAD = 0.8
HEAD_TILT = 0.15
DISC_HEIGHT = 0.06
DOME_HEIGHT = 0.11

# Per-instance variation channels
_DROOP, _TWIST, _WIDTH, _TEXTURE = 1, 2, 3, 4

PETAL_COLOR = (1.0, 0.7, 0.0)
SEPAL_COLOR = (0.23, 0.42, 0.15)
DISC_COLOR = (0.3, 0.18, 0.08)
LEAF_COLOR = (0.23, 0.49, 0.16)
VEIN_COLOR = (0.16, 0.35, 0.09)


def euler_matrix(x: float, y: float, z: float) -> np.ndarray:
    """3x3 rotation for intrinsic X-Y-Z Euler angles (Rx @ Ry @ Rz)."""
    cx, sx = math.cos(x), math.sin(x)
    cy, sy = math.cos(y), math.sin(y)
    cz, sz = math.cos(z), math.sin(z)
    rx = np.array([[1, 0, 0], [0, cx, -sx], [0, sx, cx]])
    ry = np.array([[cy, 0, sy], [0, 1, 0], [-sy, 0, cy]])
    rz = np.array([[cz, -sz, 0], [sz, cz, 0], [0, 0, 1]])
    return rx @ ry @ rz


@dataclass(eq=False)
class Node:
    """Scene-graph node with a local transform and an optional mesh."""

    name: str
    mesh: Optional[Mesh] = None
    position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    rotation: np.ndarray = field(default_factory=lambda: np.zeros(3))  # Euler XYZ, radians
    scale: np.ndarray = field(default_factory=lambda: np.ones(3))
    material: dict = field(default_factory=dict)
    children: list = field(default_factory=list)

    def __post_init__(self):
        self.position = np.array(self.position, dtype=np.float64)
        self.rotation = np.array(self.rotation, dtype=np.float64)
        self.scale = np.broadcast_to(np.asarray(self.scale, dtype=np.float64), (3,)).copy()

    def add(self, child: "Node") -> "Node":
        self.children.append(child)
        return child

    def local_matrix(self) -> np.ndarray:
        m = np.eye(4)
        m[:3, :3] = euler_matrix(*self.rotation) * self.scale[None, :]
        m[:3, 3] = self.position
        return m

    def walk(self, parent_matrix: Optional[np.ndarray] = None):
        """Yield (node, world_matrix) depth-first."""
        parent_matrix = np.eye(4) if parent_matrix is None else parent_matrix
        world = parent_matrix @ self.local_matrix()
        yield self, world
        for child in self.children:
            yield from child.walk(world)

    def find(self, name: str) -> Optional["Node"]:
        for node, _ in self.walk():
            if node.name == name:
                return node
        return None


@dataclass(frozen=True)
class FlowerState:
    """Everything the per-frame update reads and writes."""

    heartbeat: HeartbeatState = HeartbeatState()
    rotation: RotationTrackerState = RotationTrackerState()
    petals: tuple = ()
    sepals: tuple = ()
    elapsed: float = 0.0


def step_flower(
    state: FlowerState,
    petal_poses,
    sepal_poses,
    inputs: FrameInputs,
    sway_params: SwayParams = DEFAULT_SWAY,
    heartbeat_params: HeartbeatParams = DEFAULT_HEARTBEAT,
    rotation_params: RotationParams = DEFAULT_ROTATION,
) -> FlowerState:
    """Pure frame update: previous state + inputs -> next state."""
    elapsed = known(inputs.elapsed)
    if elapsed is None:
        elapsed = state.elapsed

    heartbeat = update_heartbeat(state.heartbeat, inputs.distance_m, inputs.dt, heartbeat_params)
    rotation = update_rotation(
        state.rotation,
        inputs.target_bearing_deg,
        inputs.device_heading_deg,
        inputs.dt,
        rotation_params,
    )
    petals = tuple(
        update_instance(s, pose, elapsed, heartbeat.scale, sway_params)
        for s, pose in zip(state.petals, petal_poses)
    )
    # Sepals sway but do not pulse
    sepals = tuple(
        update_instance(s, pose, elapsed, 1.0, sway_params)
        for s, pose in zip(state.sepals, sepal_poses)
    )
    return FlowerState(heartbeat, rotation, petals, sepals, elapsed)


class Flower:
    """A built flower: static meshes plus mutable transforms."""

    def __init__(self, tier: TierConfig, root: Node):
        self.tier = tier
        self.root = root
        self.petal_nodes: list[Node] = []
        self.petal_poses: list[InstancePose] = []
        self.sepal_nodes: list[Node] = []
        self.sepal_poses: list[InstancePose] = []
        self.leaf_nodes: list[tuple[Node, int, float]] = []  # (node, side, height)
        self.disc_spin: Optional[Node] = None
        self.used_stem_fallback = False
        self.state = FlowerState()

    def reset_state(self):
        self.state = FlowerState(
            petals=tuple(AnimationState(p.base_tilt + p.droop, p.twist, p.length) for p in self.petal_poses),
            sepals=tuple(AnimationState(p.base_tilt + p.droop, p.twist, p.length) for p in self.sepal_poses),
        )

    @property
    def heartbeat_scale(self) -> float:
        return self.state.heartbeat.scale

    @property
    def yaw(self) -> float:
        return self.state.rotation.yaw

    def update(self, inputs: FrameInputs) -> FlowerState:
        """Advance one frame and write rotations/scales into the nodes."""
        self.state = step_flower(self.state, self.petal_poses, self.sepal_poses, inputs)

        self.root.rotation[1] = self.state.rotation.yaw
        for node, s in zip(self.petal_nodes, self.state.petals):
            node.rotation[0] = s.pitch
            node.rotation[2] = s.roll
            node.scale[:] = s.scale
        for node, s in zip(self.sepal_nodes, self.state.sepals):
            node.rotation[0] = s.pitch
            node.rotation[2] = s.roll
        for node, side, height in self.leaf_nodes:
            node.rotation[2] = leaf_roll(self.state.elapsed, side, height)
        if self.disc_spin is not None:
            self.disc_spin.rotation[1] = disc_yaw(self.state.elapsed)
        return self.state

    def walk(self):
        return self.root.walk()

    def meshes(self) -> dict[str, Mesh]:
        """Named meshes in scene order."""
        return {node.name: node.mesh for node, _ in self.walk() if node.mesh is not None}

    def bake(self) -> Mesh:
        """Merge every mesh at its current world transform (inspection only)."""
        parts = [transform_mesh(node.mesh, world) for node, world in self.walk() if node.mesh is not None]
        for part in parts:
            part.colors = None
        return merge_meshes(parts)

    def dispose(self):
        """Release all owned buffers; the flower must not be updated afterwards."""
        for node, _ in self.walk():
            if node.mesh is not None:
                node.mesh.release()
                node.mesh = None
        self.petal_nodes.clear()
        self.sepal_nodes.clear()
        self.leaf_nodes.clear()


def _material(textures: dict, key: str, color) -> dict:
    return {"texture": textures.get(key), "color": color}


def _add_petals(flower: Flower, head: Node, tier: TierConfig, textures: dict):
    ring_groups = {}
    for d in layout_rings(tier):
        if d.ring_index not in ring_groups:
            ring_groups[d.ring_index] = head.add(Node(f"ring_{d.ring_index}"))
        outline = build_petal_outline(1.0 + jitter(d.index, d.ring_index, _WIDTH, 0.12))
        mesh = extrude_and_deform(outline, PETAL_DEPTH, tier, d.ring_index, d.seed, PETAL_DEFORM)

        pose = InstancePose(
            index=d.index,
            ring=d.ring_index,
            time_offset=d.time_offset,
            base_tilt=base_tilt(d.ring_index),
            droop=jitter(d.index, d.ring_index, _DROOP, 0.12),
            twist=jitter(d.index, d.ring_index, _TWIST, 0.06),
            length=PETAL_BASE_LENGTH + d.ring_index * PETAL_LENGTH_PER_RING,
        )
        pivot = ring_groups[d.ring_index].add(Node(
            f"petal_pivot_r{d.ring_index}_{d.index}",
            position=(math.cos(d.angular_offset) * d.ring_radius, PETAL_HEIGHT,
                      math.sin(d.angular_offset) * d.ring_radius),
            rotation=(0.0, -d.angular_offset - math.pi / 2.0, 0.0),
        ))
        material = _material(textures, "petal", PETAL_COLOR)
        material["texture_rotation"] = jitter(d.index, d.ring_index, _TEXTURE, 0.06) * 0.3
        node = pivot.add(Node(
            f"petal_r{d.ring_index}_{d.index}",
            mesh=mesh,
            rotation=(pose.base_tilt + pose.droop, 0.0, pose.twist),
            scale=pose.length,
            material=material,
        ))
        flower.petal_nodes.append(node)
        flower.petal_poses.append(pose)


def _add_sepals(flower: Flower, head: Node, tier: TierConfig, textures: dict):
    if not tier.sepal_count:
        return
    group = head.add(Node("sepals"))
    outline = build_sepal_outline()
    for d in layout_sepals(tier):
        mesh = extrude_and_deform(outline, SEPAL_DEPTH, tier, 0, d.seed, SEPAL_DEFORM)
        pose = InstancePose(
            index=d.index,
            ring=0,
            time_offset=d.time_offset,
            base_tilt=SEPAL_TILT,
            droop=jitter(d.index, -1, _DROOP, 0.08),
            twist=jitter(d.index, -1, _TWIST, 0.04),
            length=SEPAL_LENGTH,
        )
        pivot = group.add(Node(
            f"sepal_pivot_{d.index}",
            position=(math.cos(d.angular_offset) * d.ring_radius, SEPAL_HEIGHT,
                      math.sin(d.angular_offset) * d.ring_radius),
            rotation=(0.0, -d.angular_offset - math.pi / 2.0, 0.0),
        ))
        node = pivot.add(Node(
            f"sepal_{d.index}",
            mesh=mesh,
            rotation=(pose.base_tilt + pose.droop, 0.0, pose.twist),
            scale=pose.length,
            material=_material(textures, "sepal", SEPAL_COLOR),
        ))
        flower.sepal_nodes.append(node)
        flower.sepal_poses.append(pose)


def _add_disc(flower: Flower, head: Node, tier: TierConfig, textures: dict):
    spin = head.add(Node("disc_spin"))
    spin.add(Node("disc", mesh=build_disc(tier), position=(0.0, DISC_HEIGHT, 0.0),
                  material=_material(textures, "disc", DISC_COLOR)))
    spin.add(Node("disc_dome", mesh=build_disc_dome(tier), position=(0.0, DOME_HEIGHT, 0.0),
                  material=_material(textures, "disc", DISC_COLOR)))
    flower.disc_spin = spin


def _add_leaves(flower: Flower, parent: Node, tier: TierConfig, textures: dict):
    outline = build_leaf_outline(tier.leaf_serrations)
    for leaf in layout_leaves(tier):
        group = parent.add(Node(
            f"leaf_group_{leaf.index}",
            position=(leaf.side * 0.08, leaf.height, 0.0),
            rotation=(0.0, 0.0, -leaf.side * LEAF_SPREAD),
        ))
        mesh = extrude_and_deform(outline, LEAF_DEPTH, tier, 0, leaf.seed, LEAF_DEFORM)
        node = group.add(Node(
            f"leaf_{leaf.index}",
            mesh=mesh,
            rotation=(0.0, 0.0, leaf_roll(0.0, leaf.side, leaf.height)),
            scale=(LEAF_SCALE, LEAF_SCALE, 1.0),
            material=_material(textures, "leaf", LEAF_COLOR),
        ))
        if tier.enable_secondary_detail:
            node.add(Node(
                f"leaf_vein_{leaf.index}",
                mesh=build_leaf_vein(),
                position=(0.0, 0.5, 0.006),
                scale=(1.0, 1.6, 1.0),
                material={"texture": None, "color": VEIN_COLOR},
            ))
        flower.leaf_nodes.append((node, leaf.side, leaf.height))


def build_flower(
    capability=CapabilityTier.DESKTOP,
    textures: Optional[dict] = None,
    tier: Optional[TierConfig] = None,
    spline: Optional[Spline] = None,
) -> Flower:
    """Build a complete flower.

    Args:
        capability: device tier flag, ignored when ``tier`` is given
        textures: optional {"petal", "disc", "leaf", "sepal"} handles, stored
            on node materials untouched
        tier: explicit TierConfig overriding ``capability``
        spline: stem curve (defaults to the standard stem)

    Raises:
        ConfigurationError: unknown capability flag or invalid tier
    """
    tier = tier if tier is not None else select_tier(capability)
    tier.validate()
    textures = dict(textures or {})

    root = Node("flower", position=(0.0, -0.5, 0.0))
    flower = Flower(tier, root)
    tilt = root.add(Node("tilt", rotation=(HEAD_TILT, 0.0, 0.0)))
    head = tilt.add(Node("head", position=(0.0, 0.5, 0.0)))

    _add_sepals(flower, head, tier, textures)
    _add_petals(flower, head, tier, textures)
    _add_disc(flower, head, tier, textures)

    stem = build_stem_result(spline if spline is not None else default_stem_spline(), tier)
    flower.used_stem_fallback = stem.used_fallback
    tilt.add(Node("stem", mesh=stem.mesh, material={"texture": None, "color": None}))

    _add_leaves(flower, tilt, tier, textures)
    flower.reset_state()

    logger.debug(
        "Built flower: %d petals, %d sepals, %d leaves (stem fallback=%s)",
        len(flower.petal_nodes), len(flower.sepal_nodes), len(flower.leaf_nodes),
        flower.used_stem_fallback,
    )
    return flower

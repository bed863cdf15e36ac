"""Analytic primitives for the flower centre and leaf veins."""

import numpy as np

from sunflower.config import TierConfig
from sunflower.mesh import Mesh, merge_meshes

DISC_RADIUS_TOP = 0.30
DISC_RADIUS_BOTTOM = 0.33
DISC_HEIGHT = 0.08
DOME_RADIUS = 0.20
DOME_PHI_LENGTH = np.pi / 2.5

VEIN_RADIUS_TOP = 0.003
VEIN_RADIUS_BOTTOM = 0.002
VEIN_LENGTH = 0.55
VEIN_RADIAL_SEGMENTS = 4


def _grid_indices(rows: int, cols: int, offset: int = 0) -> np.ndarray:
    """Two triangles per cell of a (rows + 1) x (cols + 1) vertex grid."""
    stride = cols + 1
    i, j = np.meshgrid(np.arange(rows), np.arange(cols), indexing="ij")
    a = (i * stride + j).ravel() + offset
    b = a + 1
    c = a + stride
    d = c + 1
    return np.stack([np.stack([a, c, b], -1), np.stack([b, c, d], -1)], axis=1).reshape(-1, 3)


def _cap(radius: float, y: float, segments: int, facing_up: bool) -> Mesh:
    theta = np.linspace(0.0, 2.0 * np.pi, segments, endpoint=False)
    rim = np.stack([radius * np.cos(theta), np.full(segments, y), radius * np.sin(theta)], -1)
    positions = np.vstack([[0.0, y, 0.0], rim])
    normal = [0.0, 1.0 if facing_up else -1.0, 0.0]
    normals = np.tile(normal, (segments + 1, 1))
    uvs = np.vstack([[0.5, 0.5], np.stack([0.5 + 0.5 * np.cos(theta), 0.5 + 0.5 * np.sin(theta)], -1)])

    rim_idx = np.arange(segments) + 1
    nxt = np.roll(rim_idx, -1)
    center = np.zeros(segments, dtype=int)
    if facing_up:
        indices = np.stack([center, nxt, rim_idx], -1)
    else:
        indices = np.stack([center, rim_idx, nxt], -1)
    return Mesh(positions, normals, uvs, indices)


def build_cylinder(
    radius_top: float,
    radius_bottom: float,
    height: float,
    radial_segments: int,
    capped: bool = True,
) -> Mesh:
    """Truncated cone centred on the origin along +Y."""
    half = height * 0.5
    theta = np.linspace(0.0, 2.0 * np.pi, radial_segments + 1)
    v = np.array([0.0, 1.0])
    radius = radius_top * v + radius_bottom * (1.0 - v)  # bottom row first
    y = -half + height * v

    positions = np.stack([
        radius[:, None] * np.cos(theta)[None, :],
        np.repeat(y[:, None], radial_segments + 1, axis=1),
        radius[:, None] * np.sin(theta)[None, :],
    ], axis=-1)

    slope = (radius_bottom - radius_top) / max(height, 1e-12)
    normals = np.stack([
        np.cos(theta)[None, :].repeat(2, axis=0),
        np.full((2, radial_segments + 1), slope),
        np.sin(theta)[None, :].repeat(2, axis=0),
    ], axis=-1)
    normals /= np.linalg.norm(normals, axis=-1, keepdims=True)
    uvs = np.stack(np.meshgrid(theta / (2.0 * np.pi), v, indexing="xy"), axis=-1)

    side = Mesh(
        positions=positions.reshape(-1, 3),
        normals=normals.reshape(-1, 3),
        uvs=uvs.reshape(-1, 2),
        indices=_grid_indices(1, radial_segments),
    )
    if not capped:
        return side
    return merge_meshes([
        side,
        _cap(radius_top, half, radial_segments, facing_up=True),
        _cap(radius_bottom, -half, radial_segments, facing_up=False),
    ])


def build_dome(radius: float, width_segments: int, height_segments: int, phi_length: float) -> Mesh:
    """Spherical cap around +Y, open at the rim."""
    phi = np.linspace(0.0, phi_length, height_segments + 1)
    theta = np.linspace(0.0, 2.0 * np.pi, width_segments + 1)
    PHI, THETA = np.meshgrid(phi, theta, indexing="ij")

    normals = np.stack([
        np.sin(PHI) * np.cos(THETA),
        np.cos(PHI),
        np.sin(PHI) * np.sin(THETA),
    ], axis=-1)
    uvs = np.stack([THETA / (2.0 * np.pi), 1.0 - PHI / phi_length], axis=-1)
    return Mesh(
        positions=(radius * normals).reshape(-1, 3),
        normals=normals.reshape(-1, 3),
        uvs=uvs.reshape(-1, 2),
        indices=_grid_indices(height_segments, width_segments),
    )


def build_disc(tier: TierConfig) -> Mesh:
    """Seed disc: a shallow cone facing +Y."""
    return build_cylinder(DISC_RADIUS_TOP, DISC_RADIUS_BOTTOM, DISC_HEIGHT, tier.disc_segments)


def build_disc_dome(tier: TierConfig) -> Mesh:
    """Raised centre of the disc."""
    width = max(3, (tier.disc_segments * 3) // 4)
    height = max(2, tier.disc_segments // 2)
    return build_dome(DOME_RADIUS, width, height, DOME_PHI_LENGTH)


def build_leaf_vein() -> Mesh:
    """Thin midrib laid along the leaf's long axis."""
    return build_cylinder(
        VEIN_RADIUS_TOP, VEIN_RADIUS_BOTTOM, VEIN_LENGTH, VEIN_RADIAL_SEGMENTS, capped=False
    )

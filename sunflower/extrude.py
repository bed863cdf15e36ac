"""Extrude 2D outlines into thin solids and bend them into organic shapes.

The deformation fields only add to Z (depth) as a function of the vertex's
local (x, y), so the silhouette seen from the front is preserved:

    curl:     dz = y^p * (curl_base + ring * curl_per_ring + seed * curl_jitter)
    channel:  dz = (|x| * k)^q * channel_depth * (1 - y * falloff)
    twist:    dz = x * y * twist
    wave:     dx = sin(2 pi y) * amplitude   (secondary detail only)
"""

from dataclasses import dataclass

import numpy as np
from scipy.spatial import Delaunay

from sunflower.config import TierConfig
from sunflower.mesh import Mesh
from sunflower.outline import Outline, contains_points, outward_normals, signed_area


@dataclass(frozen=True)
class DeformParams:
    curl_base: float = 0.05
    curl_per_ring: float = 0.025
    curl_jitter: float = 0.02
    curl_exponent: float = 2.2
    channel_scale: float = 6.0
    channel_depth: float = 0.015
    channel_per_ring: float = 0.008
    channel_falloff: float = 0.5
    channel_power: float = 2.0  # 1 lifts the margin linearly
    twist: float = 0.12
    wave_amplitude: float = 0.01


PETAL_DEFORM = DeformParams()

SEPAL_DEFORM = DeformParams(
    curl_base=0.03,
    curl_per_ring=0.0,
    curl_jitter=0.015,
    curl_exponent=2.0,
    channel_scale=4.0,
    channel_depth=0.02,
    channel_per_ring=0.0,
    channel_falloff=0.4,
    twist=0.04,
    wave_amplitude=0.005,
)

LEAF_DEFORM = DeformParams(
    curl_base=0.08,
    curl_per_ring=0.0,
    curl_jitter=0.0,
    curl_exponent=2.0,
    channel_scale=1.0,
    channel_depth=0.06,
    channel_per_ring=0.0,
    channel_falloff=0.0,
    channel_power=1.0,
    twist=0.0,
    wave_amplitude=0.0,
)

# Bevel proportions relative to extrusion depth
_BEVEL_THICKNESS = 0.375
_BEVEL_SIZE = 0.5


def _distance_to_loop(points: np.ndarray, loop: np.ndarray) -> np.ndarray:
    """Shortest distance from each point to the closed polyline ``loop``."""
    a = loop[None, :, :]
    b = np.roll(loop, -1, axis=0)[None, :, :]
    p = points[:, None, :]
    ab = b - a
    denom = np.maximum(np.sum(ab * ab, axis=-1), 1e-18)
    t = np.clip(np.sum((p - a) * ab, axis=-1) / denom, 0.0, 1.0)
    closest = a + t[..., None] * ab
    return np.linalg.norm(p - closest, axis=-1).min(axis=1)


def triangulate_outline(boundary: np.ndarray, spacing: float) -> tuple[np.ndarray, np.ndarray]:
    """Triangulate the interior of a closed outline.

    Interior grid points at ``spacing`` are added so that the deformation
    fields have vertices to act on away from the margin.

    Returns:
        points: (N, 2) boundary points first, then interior points
        triangles: (M, 3) counter-clockwise triangles
    """
    lo = boundary.min(axis=0)
    hi = boundary.max(axis=0)
    xs = np.arange(lo[0] + spacing * 0.5, hi[0], spacing)
    ys = np.arange(lo[1] + spacing * 0.5, hi[1], spacing)
    grid = np.stack(np.meshgrid(xs, ys, indexing="xy"), axis=-1).reshape(-1, 2)
    if len(grid):
        inside = contains_points(boundary, grid)
        grid = grid[inside]
    if len(grid):
        grid = grid[_distance_to_loop(grid, boundary) > spacing * 0.4]

    points = np.concatenate([boundary, grid], axis=0)
    simplices = Delaunay(points).simplices

    # Delaunay covers the convex hull; drop triangles outside concave margins
    centroids = points[simplices].mean(axis=1)
    triangles = simplices[contains_points(boundary, centroids)]

    tri = points[triangles]
    cross = (tri[:, 1, 0] - tri[:, 0, 0]) * (tri[:, 2, 1] - tri[:, 0, 1]) - (
        tri[:, 1, 1] - tri[:, 0, 1]
    ) * (tri[:, 2, 0] - tri[:, 0, 0])
    flip = cross < 0
    triangles[flip] = triangles[flip][:, ::-1]
    return points, triangles.astype(np.int32)


def _side_profile(depth: float, bevel: bool, bevel_segments: int) -> list[tuple[float, float]]:
    """(outward offset, z) pairs for the side wall rings, back to front."""
    if not bevel:
        return [(0.0, 0.0), (0.0, depth)]
    thickness = depth * _BEVEL_THICKNESS
    size = depth * _BEVEL_SIZE
    angles = np.linspace(0.0, np.pi / 2, bevel_segments + 1)
    back = [(size * np.sin(a), -thickness * np.cos(a)) for a in angles]
    front = [(size * np.sin(a), depth + thickness * np.cos(a)) for a in angles[::-1]]
    return back + front


def extrude_outline(outline: Outline, depth: float, tier: TierConfig) -> Mesh:
    """Extrude an outline along +Z into a closed thin solid (normals not yet final)."""
    boundary = outline.sample(tier.curve_segments)
    if signed_area(boundary) < 0:
        boundary = boundary[::-1].copy()

    lo = boundary.min(axis=0)
    extent = np.maximum(boundary.max(axis=0) - lo, 1e-9)
    spacing = float(extent.max()) / (2 * tier.curve_segments)
    cap_points, cap_triangles = triangulate_outline(boundary, spacing)
    cap_uv = (cap_points - lo) / extent

    profile = _side_profile(depth, tier.extrude_bevel, tier.bevel_segments)
    z_back = profile[0][1]
    z_front = profile[-1][1]

    positions, uvs, indices = [], [], []
    n_cap = len(cap_points)

    # Back cap faces -Z, front cap faces +Z
    positions.append(np.column_stack([cap_points, np.full(n_cap, z_back)]))
    uvs.append(cap_uv)
    indices.append(cap_triangles[:, ::-1])
    positions.append(np.column_stack([cap_points, np.full(n_cap, z_front)]))
    uvs.append(cap_uv)
    indices.append(cap_triangles + n_cap)
    offset = 2 * n_cap

    # Side walls: one ring per profile step, seam vertex duplicated for UVs
    normals2d = outward_normals(boundary)
    loop = np.vstack([boundary, boundary[:1]])
    loop_normals = np.vstack([normals2d, normals2d[:1]])
    arc = np.concatenate([[0.0], np.cumsum(np.linalg.norm(np.diff(loop, axis=0), axis=-1))])
    u = arc / max(arc[-1], 1e-12)
    ring_size = len(loop)
    z_span = max(z_front - z_back, 1e-12)
    for push, z in profile:
        ring = loop + loop_normals * push
        positions.append(np.column_stack([ring, np.full(ring_size, z)]))
        uvs.append(np.column_stack([u, np.full(ring_size, (z - z_back) / z_span)]))

    quads = []
    for k in range(len(profile) - 1):
        for j in range(ring_size - 1):
            a = offset + k * ring_size + j
            b = a + 1
            c = a + ring_size
            d = c + 1
            quads.append([a, b, c])
            quads.append([b, d, c])
    indices.append(np.asarray(quads, dtype=np.int32).reshape(-1, 3))

    positions = np.concatenate(positions, axis=0)
    return Mesh(
        positions=positions,
        normals=np.zeros_like(positions),
        uvs=np.concatenate(uvs, axis=0),
        indices=np.concatenate(indices, axis=0),
    )


def deform_positions(
    positions: np.ndarray,
    ring: int,
    seed: float,
    params: DeformParams = PETAL_DEFORM,
    secondary_detail: bool = False,
) -> np.ndarray:
    """Apply curl, channel, twist (and optionally wave) to (N, 3) positions."""
    out = np.array(positions, dtype=np.float64, copy=True)
    x = out[:, 0].copy()
    y = out[:, 1].copy()

    curl = params.curl_base + ring * params.curl_per_ring + seed * params.curl_jitter
    out[:, 2] += np.power(np.clip(y, 0.0, None), params.curl_exponent) * curl

    channel_depth = params.channel_depth + ring * params.channel_per_ring
    out[:, 2] += (np.abs(x) * params.channel_scale) ** params.channel_power * channel_depth * (
        1.0 - y * params.channel_falloff
    )

    out[:, 2] += x * y * params.twist

    if secondary_detail:
        out[:, 0] += np.sin(y * 2.0 * np.pi) * params.wave_amplitude
    return out


def extrude_and_deform(
    outline: Outline,
    depth: float,
    tier: TierConfig,
    ring: int = 0,
    seed: float = 0.0,
    params: DeformParams = PETAL_DEFORM,
) -> Mesh:
    """Build the final per-instance geometry for one petal, sepal or leaf.

    Identical arguments always produce identical buffers.
    """
    mesh = extrude_outline(outline, depth, tier)
    mesh.positions = deform_positions(
        mesh.positions, ring, seed, params, tier.enable_secondary_detail
    ).astype(np.float32)
    mesh.compute_vertex_normals()
    return mesh

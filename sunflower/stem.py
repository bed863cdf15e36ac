"""Stem geometry: a tapered tube swept along a Catmull-Rom spline.

Cross-sections are oriented with parallel-transport frames so the tube does
not twist. When the frames cannot be computed (coincident control points,
tangent reversals, non-finite input) the builder falls back to a plain
uniform-radius tube around the same spline, so a stem mesh always exists.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

from sunflower.config import TierConfig
from sunflower.mesh import Mesh

logger = logging.getLogger(__name__)

BASE_RADIUS = 0.055
RADIUS_TAPER = 0.02  # radius(t) = BASE_RADIUS - t * RADIUS_TAPER
IRREGULARITY = 0.003
BASE_COLOR = (0.176, 0.353, 0.118)
TIP_COLOR = (0.29, 0.49, 0.18)

FALLBACK_RADIUS = 0.045
FALLBACK_TUBE_SEGMENTS = 16
FALLBACK_RADIAL_SEGMENTS = 6

_EPS = 1e-9
# Largest coordinate that survives the float32 cast with room for the tube radius
_MAX_COORDINATE = float(np.finfo(np.float32).max) * 0.5


class GeometryError(ValueError):
    """Raised when frame transport along a spline is numerically degenerate."""


class Spline:
    """Uniform Catmull-Rom curve through ordered 3D control points.

    End tangents are obtained by reflecting the neighbouring control point.
    """

    def __init__(self, control_points):
        points = np.array(control_points, dtype=np.float64).reshape(-1, 3)
        if len(points) == 0:
            raise ValueError("a spline needs at least one control point")
        points.setflags(write=False)
        self._points = points

    @property
    def control_points(self) -> np.ndarray:
        return self._points

    def _padded(self) -> np.ndarray:
        p = self._points
        return np.vstack([2 * p[0] - p[1], p, 2 * p[-1] - p[-2]])

    def _segment(self, t: np.ndarray):
        n = len(self._points)
        scaled = np.clip(np.asarray(t, dtype=np.float64), 0.0, 1.0) * (n - 1)
        i = np.minimum(np.floor(scaled).astype(int), n - 2)
        local = (scaled - i)[:, None]
        padded = self._padded()
        return padded[i], padded[i + 1], padded[i + 2], padded[i + 3], local

    def points(self, t) -> np.ndarray:
        """Positions at parameters ``t`` in [0, 1] -> (len(t), 3)."""
        t = np.atleast_1d(t)
        if len(self._points) < 2:
            return np.repeat(self._points, len(t), axis=0)
        p0, p1, p2, p3, s = self._segment(t)
        return 0.5 * (
            2 * p1
            + (p2 - p0) * s
            + (2 * p0 - 5 * p1 + 4 * p2 - p3) * s ** 2
            + (-p0 + 3 * p1 - 3 * p2 + p3) * s ** 3
        )

    def derivatives(self, t) -> np.ndarray:
        """First derivative with respect to the global parameter -> (len(t), 3)."""
        t = np.atleast_1d(t)
        if len(self._points) < 2:
            return np.zeros((len(t), 3))
        p0, p1, p2, p3, s = self._segment(t)
        local = 0.5 * (
            (p2 - p0)
            + 2 * (2 * p0 - 5 * p1 + 4 * p2 - p3) * s
            + 3 * (-p0 + 3 * p1 - 3 * p2 + p3) * s ** 2
        )
        return local * (len(self._points) - 1)

    def length(self, samples: int = 64) -> float:
        pts = self.points(np.linspace(0.0, 1.0, samples + 1))
        return float(np.linalg.norm(np.diff(pts, axis=0), axis=-1).sum())


def default_stem_spline() -> Spline:
    """Gently wavering stem from the ground (y = -3.5) up to the head (origin)."""
    return Spline([
        (0.0, -3.5, 0.0),
        (0.04, -2.8, 0.03),
        (-0.02, -2.0, -0.02),
        (0.03, -1.2, 0.01),
        (-0.01, -0.5, -0.01),
        (0.0, 0.0, 0.0),
    ])


def _perpendicular(v: np.ndarray) -> np.ndarray:
    """A unit vector perpendicular to unit vector ``v``, seeded from its smallest axis."""
    axis = np.zeros(3)
    axis[np.argmin(np.abs(v))] = 1.0
    n = np.cross(v, axis)
    return n / np.linalg.norm(n)


def _rotate(v: np.ndarray, axis: np.ndarray, angle: float) -> np.ndarray:
    """Rodrigues rotation of ``v`` about unit ``axis``."""
    c, s = np.cos(angle), np.sin(angle)
    return v * c + np.cross(axis, v) * s + axis * np.dot(axis, v) * (1.0 - c)


def parallel_transport_frames(tangents: np.ndarray):
    """Rotation-minimising frames along a sampled curve.

    Args:
        tangents: (N, 3) curve derivatives at the samples

    Returns:
        (T, N, B) each (N, 3), unit length

    Raises:
        GeometryError: zero-length or non-finite tangents, or a tangent that
            reverses between samples (no defined transport axis)
    """
    with np.errstate(invalid="ignore", divide="ignore", over="ignore"):
        lengths = np.linalg.norm(tangents, axis=-1)
        if not np.all(np.isfinite(lengths)) or np.any(lengths < _EPS):
            raise GeometryError("spline has zero-length or non-finite tangents")
        T = tangents / lengths[:, None]

        normals = np.empty_like(T)
        normals[0] = _perpendicular(T[0])
        for i in range(1, len(T)):
            axis = np.cross(T[i - 1], T[i])
            sin_angle = np.linalg.norm(axis)
            cos_angle = float(np.clip(np.dot(T[i - 1], T[i]), -1.0, 1.0))
            if sin_angle < _EPS:
                if cos_angle < 0.0:
                    raise GeometryError(f"tangent reverses direction at sample {i}")
                normals[i] = normals[i - 1]
                continue
            normals[i] = _rotate(normals[i - 1], axis / sin_angle, np.arctan2(sin_angle, cos_angle))
        binormals = np.cross(T, normals)

    if not (np.isfinite(normals).all() and np.isfinite(binormals).all()):
        raise GeometryError("frame transport produced non-finite frames")
    return T, normals, binormals


def _tube_indices(tube_segments: int, radial_segments: int) -> np.ndarray:
    stride = radial_segments + 1
    i, j = np.meshgrid(np.arange(tube_segments), np.arange(radial_segments), indexing="ij")
    a = (i * stride + j).ravel()
    b = a + 1
    c = a + stride
    d = c + 1
    return np.stack([np.stack([a, b, c], -1), np.stack([b, d, c], -1)], axis=1).reshape(-1, 3)


def build_tapered_tube(
    spline: Spline,
    tube_segments: int,
    radial_segments: int,
    irregularity: float = 0.0,
    base_color=BASE_COLOR,
    tip_color=TIP_COLOR,
) -> Mesh:
    """Sweep a tapered circular section along ``spline``.

    Raises:
        GeometryError: when frames along the spline are degenerate
    """
    t = np.linspace(0.0, 1.0, tube_segments + 1)
    centers = spline.points(t)
    _, N, B = parallel_transport_frames(spline.derivatives(t))

    theta = np.linspace(0.0, 2.0 * np.pi, radial_segments + 1)
    cos, sin = np.cos(theta), np.sin(theta)

    # (samples, ring, 3) outward directions
    directions = cos[None, :, None] * N[:, None, :] + sin[None, :, None] * B[:, None, :]
    radius = BASE_RADIUS - t * RADIUS_TAPER
    radii = np.repeat(radius[:, None], radial_segments + 1, axis=1)
    if irregularity:
        radii = radii + irregularity * np.sin(3.0 * theta[None, :] + t[:, None] * 7.0)

    positions = centers[:, None, :] + radii[..., None] * directions
    uvs = np.stack(np.meshgrid(theta / (2.0 * np.pi), t, indexing="xy"), axis=-1)

    base = np.asarray(base_color, dtype=np.float64)
    tip = np.asarray(tip_color, dtype=np.float64)
    colors = base[None, :] * (1.0 - t[:, None]) + tip[None, :] * t[:, None]
    colors = np.repeat(colors[:, None, :], radial_segments + 1, axis=1)

    if not np.all(np.abs(positions) <= _MAX_COORDINATE):
        raise GeometryError("tapered tube positions are non-finite or exceed float32 range")

    mesh = Mesh(
        positions=positions.reshape(-1, 3),
        normals=directions.reshape(-1, 3),
        uvs=uvs.reshape(-1, 2),
        indices=_tube_indices(tube_segments, radial_segments),
        colors=colors.reshape(-1, 3),
    )
    return mesh


def build_fallback_tube(
    spline: Spline,
    tube_segments: int = FALLBACK_TUBE_SEGMENTS,
    radial_segments: int = FALLBACK_RADIAL_SEGMENTS,
    radius: float = FALLBACK_RADIUS,
    color=BASE_COLOR,
) -> Mesh:
    """Uniform-radius tube with one fixed frame. Never raises.

    Non-finite samples are zeroed and huge ones clamped so the mesh stays
    finite in float32.
    """
    t = np.linspace(0.0, 1.0, tube_segments + 1)
    centers = np.nan_to_num(spline.points(t), nan=0.0, posinf=0.0, neginf=0.0)
    centers = np.clip(centers, -_MAX_COORDINATE, _MAX_COORDINATE)

    axis = centers[-1] - centers[0]
    length = np.linalg.norm(axis)
    axis = axis / length if length > _EPS else np.array([0.0, 1.0, 0.0])
    n = _perpendicular(axis)
    b = np.cross(axis, n)

    theta = np.linspace(0.0, 2.0 * np.pi, radial_segments + 1)
    directions = np.cos(theta)[:, None] * n[None, :] + np.sin(theta)[:, None] * b[None, :]
    positions = centers[:, None, :] + radius * directions[None, :, :]
    normals = np.broadcast_to(directions, positions.shape)
    uvs = np.stack(np.meshgrid(theta / (2.0 * np.pi), t, indexing="xy"), axis=-1)
    colors = np.broadcast_to(np.asarray(color, dtype=np.float64), positions.shape)

    return Mesh(
        positions=positions.reshape(-1, 3),
        normals=normals.reshape(-1, 3),
        uvs=uvs.reshape(-1, 2),
        indices=_tube_indices(tube_segments, radial_segments),
        colors=colors.reshape(-1, 3),
    )


@dataclass
class StemBuild:
    mesh: Mesh
    used_fallback: bool = False
    error: Optional[GeometryError] = None


def build_stem_result(spline: Spline, tier: TierConfig) -> StemBuild:
    """Build the stem, reporting whether the fallback tube was needed."""
    irregularity = IRREGULARITY if tier.enable_secondary_detail else 0.0
    try:
        mesh = build_tapered_tube(
            spline,
            tier.stem_tube_segments,
            tier.stem_radial_segments,
            irregularity=irregularity,
        )
    except GeometryError as err:
        logger.warning("Tapered stem failed, falling back to uniform tube: %s", err)
        return StemBuild(build_fallback_tube(spline), used_fallback=True, error=err)
    return StemBuild(mesh)


def build_stem(spline: Spline, tier: TierConfig) -> Mesh:
    return build_stem_result(spline, tier).mesh

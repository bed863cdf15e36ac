"""Parametric 2D silhouettes for petals, sepals and leaves.

Each outline is a closed chain of cubic Bezier segments in the XY plane with
the organ's long axis on +Y: base at the origin, tip near y = 1. Sampling
resolution is not part of the outline; the extruder samples it with the
tier's ``curve_segments``.
"""

from dataclasses import dataclass

import numpy as np

# Right half of a sunflower petal: narrow base, wide mid-body, pointed tip
_PETAL_RIGHT = (
    ((0.0, 0.0), (0.06, 0.08), (0.14, 0.25), (0.13, 0.45)),
    ((0.13, 0.45), (0.12, 0.6), (0.09, 0.75), (0.05, 0.88)),
    ((0.05, 0.88), (0.02, 0.95), (0.005, 0.98), (0.0, 1.0)),
)

# Right half of a sepal: short, broad and sharply pointed
_SEPAL_RIGHT = (
    ((0.0, 0.0), (0.1, 0.04), (0.2, 0.18), (0.17, 0.4)),
    ((0.17, 0.4), (0.14, 0.6), (0.05, 0.78), (0.0, 0.9)),
)

# Asymmetric leaf blade: broad right lobe, narrow left edge along the midrib
_LEAF = (
    ((0.0, 0.0), (0.18, 0.08), (0.32, 0.22), (0.42, 0.5)),
    ((0.42, 0.5), (0.38, 0.72), (0.18, 0.88), (0.0, 1.0)),
    ((0.0, 1.0), (-0.06, 0.65), (-0.03, 0.3), (0.0, 0.0)),
)

SERRATION_DEPTH = 0.025
_TOOTH_IN_RATIO = 0.35


def _mirrored(right):
    """Close a right half-outline with its reflection across the Y axis."""
    left = []
    for segment in reversed(right):
        left.append(tuple((-x, y) for x, y in reversed(segment)))
    return tuple(right) + tuple(left)


def sample_bezier(p0, p1, p2, p3, segments: int, endpoint: bool = False) -> np.ndarray:
    """Evaluate a cubic Bezier at ``segments`` evenly spaced parameters.

    Returns:
        (segments, D) points, or (segments + 1, D) with ``endpoint=True``
    """
    count = segments + 1 if endpoint else segments
    t = np.linspace(0.0, 1.0, count, endpoint=endpoint)[:, None]
    mt = 1.0 - t
    p0, p1, p2, p3 = (np.asarray(p, dtype=np.float64) for p in (p0, p1, p2, p3))
    return mt ** 3 * p0 + 3 * mt ** 2 * t * p1 + 3 * mt * t ** 2 * p2 + t ** 3 * p3


def signed_area(points: np.ndarray) -> float:
    """Shoelace area; positive for counter-clockwise loops."""
    x, y = points[:, 0], points[:, 1]
    return 0.5 * float(np.sum(x * np.roll(y, -1) - np.roll(x, -1) * y))


def outward_normals(points: np.ndarray) -> np.ndarray:
    """Per-vertex unit normals pointing out of a closed loop."""
    tangent = np.roll(points, -1, axis=0) - np.roll(points, 1, axis=0)
    normals = np.stack([tangent[:, 1], -tangent[:, 0]], axis=-1)
    if signed_area(points) < 0:
        normals = -normals
    norms = np.linalg.norm(normals, axis=-1, keepdims=True)
    return normals / np.maximum(norms, 1e-12)


def contains_points(polygon: np.ndarray, points: np.ndarray) -> np.ndarray:
    """Even-odd point-in-polygon test for many points at once.

    Args:
        polygon: (N, 2) closed loop (last vertex not repeated)
        points: (M, 2) query points

    Returns:
        (M,) boolean mask
    """
    px = points[:, 0][:, None]
    py = points[:, 1][:, None]
    x0, y0 = polygon[:, 0][None, :], polygon[:, 1][None, :]
    x1 = np.roll(polygon[:, 0], -1)[None, :]
    y1 = np.roll(polygon[:, 1], -1)[None, :]

    straddles = (y0 > py) != (y1 > py)
    with np.errstate(divide="ignore", invalid="ignore"):
        x_cross = x0 + (py - y0) * (x1 - x0) / (y1 - y0)
    crossings = straddles & (px < x_cross)
    return (np.count_nonzero(crossings, axis=1) % 2) == 1


def resample_closed(points: np.ndarray, count: int) -> np.ndarray:
    """Resample a closed loop at ``count`` points evenly spaced by arc length."""
    loop = np.vstack([points, points[:1]])
    seg_len = np.linalg.norm(np.diff(loop, axis=0), axis=-1)
    cumulative = np.concatenate([[0.0], np.cumsum(seg_len)])
    targets = np.linspace(0.0, cumulative[-1], count, endpoint=False)
    x = np.interp(targets, cumulative, loop[:, 0])
    y = np.interp(targets, cumulative, loop[:, 1])
    return np.stack([x, y], axis=-1)


@dataclass(frozen=True)
class Outline:
    """Closed silhouette built from cubic Bezier control points."""

    kind: str
    control_points: tuple  # ((p0, p1, p2, p3), ...) per segment
    width_scale: float = 1.0
    serration_count: int = 0
    serration_depth: float = 0.0

    @property
    def segment_count(self) -> int:
        return len(self.control_points)

    def sample(self, curve_segments: int) -> np.ndarray:
        """Sample the closed loop.

        Returns:
            (N, 2) points, the closing vertex not repeated
        """
        pieces = [sample_bezier(*segment, curve_segments) for segment in self.control_points]
        points = np.concatenate(pieces, axis=0)
        points[:, 0] *= self.width_scale
        if self.serration_count > 0:
            points = self._serrate(points)
        return points

    def _serrate(self, points: np.ndarray) -> np.ndarray:
        """Push the margin out at tooth tips and in at the notches between them.

        Each tooth spans ``2 * k`` margin vertices, with ``k`` chosen so the
        margin keeps at least twice the Bezier sampling density. Tooth depth
        follows sin(pi * t) along the long axis so the base and the tip stay
        smooth.
        """
        teeth = max(self.serration_count, 4)
        k = serration_subdivisions(len(points), teeth)
        margin = resample_closed(points, 2 * teeth * k)
        normals = outward_normals(margin)
        y_min, y_max = margin[:, 1].min(), margin[:, 1].max()
        t = (margin[:, 1] - y_min) / max(y_max - y_min, 1e-12)
        envelope = self.serration_depth * np.sin(np.pi * t)

        # Triangle wave per tooth: +1 at the tip, -1 at the notch
        s = (np.arange(len(margin)) % (2 * k)) / (2 * k)
        wave = 1.0 - 4.0 * np.minimum(s, 1.0 - s)
        direction = np.where(wave >= 0.0, wave, wave * _TOOTH_IN_RATIO)
        return margin + normals * (envelope * direction)[:, None]


def serration_subdivisions(sample_count: int, teeth: int) -> int:
    """Margin vertices per half tooth for an outline sampled at ``sample_count`` points."""
    return max(1, -(-sample_count // teeth))


def build_petal_outline(width_scale: float = 1.0) -> Outline:
    return Outline("petal", _mirrored(_PETAL_RIGHT), width_scale=width_scale)


def build_sepal_outline() -> Outline:
    return Outline("sepal", _mirrored(_SEPAL_RIGHT))


def build_leaf_outline(serration_count: int = 0) -> Outline:
    """Leaf blade outline, serrated when ``serration_count`` > 0."""
    serration_count = max(int(serration_count), 0)
    return Outline(
        "leaf",
        _LEAF,
        serration_count=serration_count,
        serration_depth=SERRATION_DEPTH if serration_count else 0.0,
    )

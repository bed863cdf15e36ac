"""Triangle mesh buffers shared by every generator."""

from dataclasses import dataclass
from typing import Optional

import numpy as np


@dataclass
class Mesh:
    """Indexed triangle mesh.

    positions: (N, 3) float32
    normals: (N, 3) float32, unit length
    uvs: (N, 2) float32
    indices: (M, 3) int32 triangle vertex indices
    colors: optional (N, 3) float32 in [0, 1]
    """

    positions: np.ndarray
    normals: np.ndarray
    uvs: np.ndarray
    indices: np.ndarray
    colors: Optional[np.ndarray] = None

    def __post_init__(self):
        self.positions = np.ascontiguousarray(self.positions, dtype=np.float32).reshape(-1, 3)
        self.normals = np.ascontiguousarray(self.normals, dtype=np.float32).reshape(-1, 3)
        self.uvs = np.ascontiguousarray(self.uvs, dtype=np.float32).reshape(-1, 2)
        self.indices = np.ascontiguousarray(self.indices, dtype=np.int32).reshape(-1, 3)
        if self.colors is not None:
            self.colors = np.ascontiguousarray(self.colors, dtype=np.float32).reshape(-1, 3)

    @property
    def vertex_count(self) -> int:
        return len(self.positions)

    @property
    def triangle_count(self) -> int:
        return len(self.indices)

    def flat_buffers(self) -> dict:
        """Flattened buffers in the layout GPU uploads expect."""
        buffers = {
            "position": self.positions.ravel(),
            "normal": self.normals.ravel(),
            "uv": self.uvs.ravel(),
            "index": self.indices.ravel(),
        }
        if self.colors is not None:
            buffers["color"] = self.colors.ravel()
        return buffers

    def is_valid(self) -> bool:
        """Buffer lengths agree, every value is finite and every index is in range."""
        n = self.vertex_count
        if n == 0 or len(self.normals) != n or len(self.uvs) != n:
            return False
        if self.colors is not None and len(self.colors) != n:
            return False
        if not (np.isfinite(self.positions).all() and np.isfinite(self.normals).all()):
            return False
        if self.indices.size and (self.indices.min() < 0 or self.indices.max() >= n):
            return False
        return True

    def compute_vertex_normals(self):
        """Recompute normals from the current positions (area-weighted face average)."""
        self.normals = compute_vertex_normals(self.positions, self.indices)

    def release(self):
        """Drop buffer references so the arrays can be freed."""
        empty3 = np.zeros((0, 3), dtype=np.float32)
        self.positions = empty3
        self.normals = empty3.copy()
        self.uvs = np.zeros((0, 2), dtype=np.float32)
        self.indices = np.zeros((0, 3), dtype=np.int32)
        self.colors = None


def compute_vertex_normals(positions: np.ndarray, indices: np.ndarray) -> np.ndarray:
    """Per-vertex normals from adjacent triangle faces.

    Face normals are left unnormalised so larger faces weigh more. Vertices
    with no usable faces get a default +Z normal.
    """
    positions = np.asarray(positions, dtype=np.float64)
    normals = np.zeros_like(positions)
    if len(indices):
        v0 = positions[indices[:, 0]]
        v1 = positions[indices[:, 1]]
        v2 = positions[indices[:, 2]]
        face_normals = np.cross(v1 - v0, v2 - v0)
        for corner in range(3):
            np.add.at(normals, indices[:, corner], face_normals)

    norms = np.linalg.norm(normals, axis=-1, keepdims=True)
    degenerate = (norms < 1e-12).squeeze(-1)
    normals = normals / np.maximum(norms, 1e-12)
    normals[degenerate] = np.array([0.0, 0.0, 1.0])
    return normals.astype(np.float32)


def merge_meshes(meshes) -> Mesh:
    """Concatenate meshes into one, offsetting indices.

    Colours are kept only if every input carries them.
    """
    meshes = list(meshes)
    positions, normals, uvs, indices, colors = [], [], [], [], []
    offset = 0
    for m in meshes:
        positions.append(m.positions)
        normals.append(m.normals)
        uvs.append(m.uvs)
        indices.append(m.indices + offset)
        colors.append(m.colors)
        offset += m.vertex_count

    merged_colors = None
    if meshes and all(c is not None for c in colors):
        merged_colors = np.concatenate(colors, axis=0)
    return Mesh(
        positions=np.concatenate(positions, axis=0),
        normals=np.concatenate(normals, axis=0),
        uvs=np.concatenate(uvs, axis=0),
        indices=np.concatenate(indices, axis=0),
        colors=merged_colors,
    )


def transform_mesh(mesh: Mesh, matrix: np.ndarray) -> Mesh:
    """Return a copy of ``mesh`` with a 4x4 affine transform baked in."""
    matrix = np.asarray(matrix, dtype=np.float64)
    linear = matrix[:3, :3]
    positions = mesh.positions @ linear.T + matrix[:3, 3]
    normal_matrix = np.linalg.inv(linear).T
    normals = mesh.normals @ normal_matrix.T
    normals /= np.maximum(np.linalg.norm(normals, axis=-1, keepdims=True), 1e-12)
    colors = None if mesh.colors is None else mesh.colors.copy()
    return Mesh(positions, normals, mesh.uvs.copy(), mesh.indices.copy(), colors)

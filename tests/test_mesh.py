"""Tests for mesh buffers and helpers."""

import numpy as np
import pytest

from sunflower.mesh import Mesh, compute_vertex_normals, merge_meshes, transform_mesh


def _triangle(offset=0.0):
    positions = np.array([[0, 0, 0], [1, 0, 0], [0, 1, 0]], dtype=np.float32) + offset
    return Mesh(
        positions=positions,
        normals=np.zeros_like(positions),
        uvs=np.zeros((3, 2)),
        indices=[[0, 1, 2]],
    )


class TestMesh:
    def test_dtypes(self):
        m = _triangle()
        assert m.positions.dtype == np.float32
        assert m.uvs.dtype == np.float32
        assert m.indices.dtype == np.int32
        assert m.indices.shape == (1, 3)

    def test_counts(self):
        m = _triangle()
        assert m.vertex_count == 3
        assert m.triangle_count == 1

    def test_flat_buffers_consistent(self):
        buffers = _triangle().flat_buffers()
        assert len(buffers["position"]) // 3 == len(buffers["uv"]) // 2
        assert len(buffers["normal"]) == len(buffers["position"])
        assert len(buffers["index"]) % 3 == 0
        assert "color" not in buffers

    def test_valid(self):
        assert _triangle().is_valid()

    def test_index_out_of_range_invalid(self):
        m = _triangle()
        m.indices = np.array([[0, 1, 3]], dtype=np.int32)
        assert not m.is_valid()

    def test_non_finite_invalid(self):
        m = _triangle()
        m.positions[0, 0] = np.nan
        assert not m.is_valid()

    def test_release(self):
        m = _triangle()
        m.release()
        assert m.vertex_count == 0
        assert m.triangle_count == 0
        assert not m.is_valid()


class TestVertexNormals:
    def test_ccw_triangle_faces_plus_z(self):
        m = _triangle()
        m.compute_vertex_normals()
        np.testing.assert_allclose(m.normals, np.tile([0, 0, 1], (3, 1)), atol=1e-6)

    def test_unit_length(self):
        positions = np.random.default_rng(0).normal(size=(20, 3))
        indices = np.array([[i, i + 1, i + 2] for i in range(18)])
        normals = compute_vertex_normals(positions, indices)
        np.testing.assert_allclose(np.linalg.norm(normals, axis=-1), 1.0, atol=1e-5)

    def test_isolated_vertex_gets_default(self):
        positions = np.array([[0, 0, 0], [1, 0, 0], [0, 1, 0], [5, 5, 5]])
        normals = compute_vertex_normals(positions, np.array([[0, 1, 2]]))
        np.testing.assert_allclose(normals[3], [0, 0, 1])


class TestMergeAndTransform:
    def test_merge_offsets_indices(self):
        merged = merge_meshes([_triangle(), _triangle(2.0)])
        assert merged.vertex_count == 6
        np.testing.assert_array_equal(merged.indices, [[0, 1, 2], [3, 4, 5]])
        assert merged.is_valid()

    def test_merge_drops_partial_colors(self):
        a = _triangle()
        a.colors = np.ones((3, 3), dtype=np.float32)
        assert merge_meshes([a, _triangle()]).colors is None

    def test_transform_translation(self):
        m = _triangle()
        m.compute_vertex_normals()
        matrix = np.eye(4)
        matrix[:3, 3] = [1.0, 2.0, 3.0]
        moved = transform_mesh(m, matrix)
        np.testing.assert_allclose(moved.positions, m.positions + [1, 2, 3])
        np.testing.assert_allclose(moved.normals, m.normals, atol=1e-6)

    def test_transform_does_not_mutate(self):
        m = _triangle()
        before = m.positions.copy()
        matrix = np.diag([2.0, 2.0, 2.0, 1.0])
        scaled = transform_mesh(m, matrix)
        np.testing.assert_array_equal(m.positions, before)
        np.testing.assert_allclose(scaled.positions, before * 2)

    def test_transform_rotation_rotates_normals(self):
        m = _triangle()
        m.compute_vertex_normals()
        # 90 degrees about X: +Z -> -Y
        matrix = np.eye(4)
        matrix[:3, :3] = [[1, 0, 0], [0, 0, -1], [0, 1, 0]]
        rotated = transform_mesh(m, matrix)
        np.testing.assert_allclose(rotated.normals, np.tile([0, -1, 0], (3, 1)), atol=1e-6)

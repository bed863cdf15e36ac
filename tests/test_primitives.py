"""Tests for disc, dome and vein primitives."""

import numpy as np
import pytest

from sunflower.config import LowTierConfig, TierConfig
from sunflower.primitives import (
    DISC_HEIGHT,
    DISC_RADIUS_BOTTOM,
    DISC_RADIUS_TOP,
    DOME_RADIUS,
    build_cylinder,
    build_disc,
    build_disc_dome,
    build_dome,
    build_leaf_vein,
)


class TestCylinder:
    def test_uncapped_counts(self):
        mesh = build_cylinder(1.0, 1.0, 2.0, 8, capped=False)
        assert mesh.vertex_count == 2 * 9
        assert mesh.triangle_count == 16

    def test_capped_adds_caps(self):
        mesh = build_cylinder(1.0, 1.0, 2.0, 8)
        assert mesh.vertex_count == 2 * 9 + 2 * 9
        assert mesh.is_valid()

    def test_radii_and_height(self):
        mesh = build_cylinder(0.5, 1.0, 2.0, 12, capped=False)
        top = mesh.positions[mesh.positions[:, 1] > 0]
        bottom = mesh.positions[mesh.positions[:, 1] < 0]
        np.testing.assert_allclose(np.hypot(top[:, 0], top[:, 2]), 0.5, atol=1e-6)
        np.testing.assert_allclose(np.hypot(bottom[:, 0], bottom[:, 2]), 1.0, atol=1e-6)
        np.testing.assert_allclose(top[:, 1], 1.0)
        np.testing.assert_allclose(bottom[:, 1], -1.0)

    def test_side_normals_point_out(self):
        mesh = build_cylinder(1.0, 1.0, 2.0, 8, capped=False)
        radial = mesh.positions * np.array([1, 0, 1])
        assert np.all(np.sum(mesh.normals * radial, axis=-1) > 0)


class TestDome:
    def test_on_sphere(self):
        mesh = build_dome(0.2, 12, 6, np.pi / 2.5)
        np.testing.assert_allclose(np.linalg.norm(mesh.positions, axis=-1), 0.2, atol=1e-6)
        assert mesh.positions[:, 1].min() == pytest.approx(0.2 * np.cos(np.pi / 2.5), abs=1e-6)

    def test_valid(self):
        assert build_dome(1.0, 8, 4, np.pi / 2).is_valid()


class TestFlowerPrimitives:
    def test_disc_dimensions(self):
        mesh = build_disc(TierConfig())
        y = mesh.positions[:, 1]
        assert y.max() - y.min() == pytest.approx(DISC_HEIGHT, abs=1e-6)
        radius = np.hypot(mesh.positions[:, 0], mesh.positions[:, 2])
        assert radius.max() == pytest.approx(DISC_RADIUS_BOTTOM, abs=1e-6)
        assert DISC_RADIUS_TOP < DISC_RADIUS_BOTTOM

    def test_disc_follows_tier(self):
        assert build_disc(LowTierConfig()).vertex_count < build_disc(TierConfig()).vertex_count
        assert build_disc_dome(LowTierConfig()).vertex_count < build_disc_dome(TierConfig()).vertex_count

    def test_dome_radius(self):
        mesh = build_disc_dome(TierConfig())
        np.testing.assert_allclose(np.linalg.norm(mesh.positions, axis=-1), DOME_RADIUS, atol=1e-6)

    def test_leaf_vein(self):
        mesh = build_leaf_vein()
        assert mesh.is_valid()
        assert mesh.positions[:, 1].max() - mesh.positions[:, 1].min() == pytest.approx(0.55, abs=1e-6)

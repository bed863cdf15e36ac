"""Tests for the headless viewer entry point."""

import json
import math
import os
import tempfile
from typing import Optional, get_type_hints

import numpy as np
import pytest

from sunflower.animation import HeartbeatMode
from sunflower.config import ConfigurationError
from sunflower.scene import build_flower
from viewer.app import run_headless
from viewer.flower_mesh import vertex_colors


class TestRunHeadless:
    def test_frame_count(self):
        states = run_headless(num_frames=12, tier="low", verbose=False)
        assert len(states) == 12
        assert states[-1].elapsed == pytest.approx(12 / 60.0)

    def test_pulses_when_close(self):
        states = run_headless(num_frames=30, tier="low", distance=50.0, verbose=False)
        assert all(s.heartbeat.mode is HeartbeatMode.PULSING for s in states)

    def test_tracks_fixed_heading(self):
        states = run_headless(num_frames=240, tier="low", bearing=90.0, heading=0.0, verbose=False)
        assert states[-1].rotation.yaw == pytest.approx(math.pi / 2, abs=1e-2)

    def test_unknown_bearing_holds_yaw(self):
        states = run_headless(num_frames=20, tier="low", bearing=None, verbose=False)
        assert all(s.rotation.yaw == 0.0 for s in states)

    def test_saves_recording(self):
        with tempfile.NamedTemporaryFile(suffix=".json", delete=False, mode="w") as f:
            path = f.name
        try:
            run_headless(num_frames=8, tier="low", distance=200.0, output_path=path, verbose=False)
            with open(path) as f:
                data = json.load(f)
            assert data["num_frames"] == 8
            assert data["frames"][0]["distance_m"] == 200.0
        finally:
            os.unlink(path)

    def test_verbose_summary(self, capsys):
        run_headless(num_frames=2, tier="low", verbose=True)
        out = capsys.readouterr().out
        assert "Tier: low" in out
        assert "After 2 frames" in out

    def test_unknown_inputs_are_optional(self):
        hints = get_type_hints(run_headless)
        for name in ("distance", "bearing", "heading"):
            assert hints[name] == Optional[float]
        assert hints["output_path"] == Optional[str]
        states = run_headless(num_frames=3, tier="low", distance=None, bearing=None, heading=None,
                              output_path=None, verbose=False)
        assert len(states) == 3

    def test_bad_tier(self):
        with pytest.raises(ConfigurationError):
            run_headless(num_frames=1, tier="ultra", verbose=False)


class TestVertexColors:
    def test_mesh_colors_win(self):
        stem = build_flower("low").meshes()["stem"]
        assert vertex_colors(stem, {"color": (1, 0, 0)}) is stem.colors

    def test_material_color(self):
        flower = build_flower("low")
        petal = flower.petal_nodes[0]
        colors = vertex_colors(petal.mesh, petal.material)
        assert colors.shape == (petal.mesh.vertex_count, 3)
        np.testing.assert_allclose(colors[0], petal.material["color"])

    def test_default_color(self):
        disc = build_flower("low").root.find("disc")
        colors = vertex_colors(disc.mesh, {})
        np.testing.assert_allclose(colors, 0.8)

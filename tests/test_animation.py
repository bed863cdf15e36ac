"""Tests for sway, heartbeat and bearing tracking."""

import math

import pytest

from sunflower.animation import (
    AnimationState,
    HeartbeatMode,
    HeartbeatState,
    InstancePose,
    RotationTrackerState,
    base_tilt,
    closeness,
    damping_factor,
    disc_yaw,
    heartbeat_bpm,
    heartbeat_waveform,
    known,
    leaf_roll,
    pulse_intensity,
    relative_angle,
    update_heartbeat,
    update_instance,
    update_rotation,
    wind_strength,
)


def _run_heartbeat(distances, dt=1.0 / 60.0, state=None):
    state = state or HeartbeatState()
    history = []
    for d in distances:
        state = update_heartbeat(state, d, dt)
        history.append(state)
    return history


class TestKnown:
    def test_values(self):
        assert known(None) is None
        assert known(float("nan")) is None
        assert known(float("inf")) is None
        assert known("abc") is None
        assert known("12.5") == 12.5
        assert known(3) == 3.0


class TestSway:
    POSE = InstancePose(index=0, ring=0, time_offset=0.0, base_tilt=-1.0, droop=0.05, twist=0.02, length=0.9)

    def test_rest_values_at_zero(self):
        state = update_instance(AnimationState(), self.POSE, 0.0)
        assert state.pitch == pytest.approx(-1.0 + 0.05)
        assert state.roll == pytest.approx(0.02 + wind_strength(0) * 0.6)
        assert state.scale == pytest.approx(0.9)

    def test_bounded_by_wind(self):
        for step in range(200):
            s = update_instance(AnimationState(), self.POSE, step * 0.1)
            assert abs(s.pitch - (-0.95)) <= wind_strength(0) + 1e-12
            assert abs(s.roll - 0.02) <= wind_strength(0) * 0.6 + 1e-12

    def test_heartbeat_scales_length(self):
        s = update_instance(AnimationState(), self.POSE, 1.0, heartbeat_scale=1.05)
        assert s.scale == pytest.approx(0.9 * 1.05)

    def test_bad_heartbeat_scale_ignored(self):
        s = update_instance(AnimationState(), self.POSE, 1.0, heartbeat_scale=float("nan"))
        assert s.scale == pytest.approx(0.9)

    def test_bad_elapsed_keeps_state(self):
        before = AnimationState(0.1, 0.2, 1.3)
        assert update_instance(before, self.POSE, None) is before

    def test_outer_rings_sway_more(self):
        assert wind_strength(2) > wind_strength(1) > wind_strength(0)

    def test_outer_rings_tilt_outward(self):
        assert base_tilt(0) == pytest.approx(-math.pi / 2 + 0.6)
        assert base_tilt(2) < base_tilt(1) < base_tilt(0)

    def test_time_offset_desynchronises(self):
        other = InstancePose(index=0, ring=0, time_offset=1.3, base_tilt=-1.0, droop=0.05, twist=0.02)
        a = update_instance(AnimationState(), self.POSE, 2.0)
        b = update_instance(AnimationState(), other, 2.0)
        assert a.pitch != b.pitch

    def test_leaf_and_disc(self):
        assert leaf_roll(0.0, 1, 0.0) == pytest.approx(0.3)
        assert leaf_roll(0.0, -1, 0.0) == pytest.approx(-0.3)
        assert disc_yaw(10.0) == pytest.approx(0.15)


class TestHeartbeatParameters:
    def test_bpm(self):
        assert heartbeat_bpm(0.0) == pytest.approx(120.0)
        assert heartbeat_bpm(500.0) == pytest.approx(90.0)
        assert heartbeat_bpm(1000.0) == pytest.approx(60.0)
        assert heartbeat_bpm(1000.1) is None
        assert heartbeat_bpm(None) is None
        assert heartbeat_bpm(float("nan")) is None

    def test_negative_distance_clamped(self):
        assert heartbeat_bpm(-50.0) == pytest.approx(120.0)
        assert closeness(-50.0) == pytest.approx(1.0)

    def test_intensity(self):
        assert pulse_intensity(0.0) == pytest.approx(0.08)
        assert pulse_intensity(1000.0) == pytest.approx(0.03)
        assert pulse_intensity(1500.0) == 0.0
        assert pulse_intensity(None) == 0.0

    def test_waveform(self):
        assert heartbeat_waveform(0.0) >= 0.0
        assert heartbeat_waveform(math.pi / 2) >= 1.0
        assert heartbeat_waveform(4.0) == 0.0
        for k in range(100):
            assert heartbeat_waveform(k * 0.0628) >= 0.0


class TestUpdateHeartbeat:
    def test_idle_without_distance(self):
        state = update_heartbeat(HeartbeatState(), None, 1.0 / 60.0)
        assert state.mode is HeartbeatMode.IDLE
        assert state.scale == 1.0

    def test_pulsing_inside_threshold(self):
        assert update_heartbeat(HeartbeatState(), 1000.0, 0.01).mode is HeartbeatMode.PULSING
        assert update_heartbeat(HeartbeatState(), 1000.5, 0.01).mode is HeartbeatMode.IDLE

    @pytest.mark.parametrize("distance,beats_per_second", [(0.0, 2.0), (1000.0, 1.0)])
    def test_phase_rate(self, distance, beats_per_second):
        state = update_heartbeat(HeartbeatState(), distance, 0.2)
        assert state.phase == pytest.approx(0.2 * beats_per_second * 2 * math.pi)

    def test_phase_wraps(self):
        history = _run_heartbeat([0.0] * 300)
        assert all(0.0 <= s.phase < 2 * math.pi for s in history)

    def test_peak_near_full_intensity(self):
        scales = [s.scale for s in _run_heartbeat([0.0] * 180)[60:]]
        assert max(scales) > 1.06
        assert max(scales) <= 1.0 + 0.08 * 1.5
        assert min(scales) >= 1.0

    def test_peak_at_threshold(self):
        scales = [s.scale for s in _run_heartbeat([1000.0] * 240)[60:]]
        assert 1.02 < max(scales) <= 1.0 + 0.03 * 1.5

    @pytest.mark.parametrize("distance", [None, 1500.0, float("nan")])
    def test_idle_settles_to_rest(self, distance):
        start = HeartbeatState(scale=1.08, phase=1.0, envelope=1.0, mode=HeartbeatMode.PULSING)
        final = _run_heartbeat([distance] * 200, state=start)[-1]
        assert final.mode is HeartbeatMode.IDLE
        assert abs(final.scale - 1.0) < 1e-4
        assert final.phase == 1.0

    def test_idle_relaxes_monotonically(self):
        start = HeartbeatState(scale=1.05)
        scales = [s.scale for s in _run_heartbeat([None] * 50, state=start)]
        assert all(a > b for a, b in zip(scales, scales[1:]))

    def test_continuous_across_threshold(self):
        distances = []
        for block in range(30):
            distances += [995.0 if block % 2 == 0 else 1005.0] * 20
        history = _run_heartbeat(distances)
        scales = [1.0] + [s.scale for s in history]
        jumps = [abs(b - a) for a, b in zip(scales, scales[1:])]
        assert max(jumps) < 0.01

    def test_bad_dt_freezes_phase(self):
        start = HeartbeatState(phase=0.5, envelope=1.0, mode=HeartbeatMode.PULSING)
        state = update_heartbeat(start, 100.0, float("nan"))
        assert state.phase == 0.5


class TestRelativeAngle:
    def test_quarter_turn(self):
        assert relative_angle(90.0, 0.0) == pytest.approx(math.pi / 2)

    def test_wraps(self):
        assert relative_angle(10.0, 350.0) == pytest.approx(math.radians(20.0))
        assert relative_angle(350.0, 10.0) == pytest.approx(math.radians(340.0))

    def test_unknown_bearing(self):
        assert relative_angle(None, 10.0) is None

    def test_unknown_heading_reads_as_north(self):
        assert relative_angle(45.0, None) == pytest.approx(math.radians(45.0))


class TestUpdateRotation:
    @pytest.mark.parametrize("dt", [1 / 30, 1 / 60, 1 / 144, 1 / 240])
    def test_converges_within_three_seconds(self, dt):
        state = RotationTrackerState()
        for _ in range(round(3.0 / dt)):
            state = update_rotation(state, 90.0, 0.0, dt)
        assert abs(state.yaw - math.pi / 2) < math.radians(1.0)

    @pytest.mark.parametrize("dt", [1 / 30, 1 / 240])
    def test_converges_large_turn(self, dt):
        state = RotationTrackerState()
        for _ in range(round(3.0 / dt)):
            state = update_rotation(state, 350.0, 0.0, dt)
        assert abs(state.yaw - math.radians(350.0)) < math.radians(1.0)

    def test_frame_rate_independent(self):
        results = []
        for dt in (1 / 30, 1 / 240):
            state = RotationTrackerState()
            for _ in range(round(1.0 / dt)):
                state = update_rotation(state, 90.0, 0.0, dt)
            results.append(state.yaw)
        assert abs(results[0] - results[1]) < 0.01

    def test_unknown_bearing_holds_yaw(self):
        state = RotationTrackerState(yaw=0.7)
        assert update_rotation(state, None, 20.0, 1 / 60).yaw == 0.7

    @pytest.mark.parametrize("dt", [0.0, -0.1, float("nan"), None])
    def test_bad_dt_holds_yaw(self, dt):
        state = RotationTrackerState(yaw=0.7)
        assert update_rotation(state, 90.0, 0.0, dt).yaw == 0.7

    def test_damping_factor(self):
        assert damping_factor(1.0) == pytest.approx(0.999)
        assert damping_factor(0.0) == pytest.approx(0.0)

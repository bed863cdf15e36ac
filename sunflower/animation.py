"""Per-frame animation: wind sway, proximity heartbeat and bearing tracking.

Every update is an explicit ``update(state, inputs, dt) -> new_state`` on a
frozen state value. Nothing here touches geometry; callers copy the results
into node transforms.

Missing inputs are not errors: an unknown distance means no heartbeat, an
unknown bearing leaves the yaw where it is and an unknown heading reads as
north.
"""

import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

TWO_PI = 2.0 * math.pi


def known(value) -> Optional[float]:
    """``value`` as a finite float, or None when it is missing or unusable."""
    if value is None:
        return None
    try:
        value = float(value)
    except (TypeError, ValueError):
        return None
    return value if math.isfinite(value) else None


@dataclass(frozen=True)
class FrameInputs:
    """External scalars for one frame."""

    elapsed: float  # seconds since the flower was created
    dt: float  # seconds since the previous frame
    target_bearing_deg: Optional[float] = None  # clockwise from north
    device_heading_deg: Optional[float] = None
    distance_m: Optional[float] = None


# ---------------------------------------------------------------------------
# Wind sway
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SwayParams:
    pitch_speed: float = 0.55
    pitch_index_phase: float = 0.45
    roll_speed: float = 0.4
    roll_index_phase: float = 0.35
    roll_ratio: float = 0.6
    wind_base: float = 0.012
    wind_per_ring: float = 0.006


DEFAULT_SWAY = SwayParams()

# Leaves move slower and further than petals
LEAF_SWAY_SPEED = 0.35
LEAF_SWAY_AMPLITUDE = 0.04
LEAF_REST_ROLL = 0.3

DISC_SPIN_SPEED = 0.015  # radians per second


@dataclass(frozen=True)
class AnimationState:
    """Transform fields of one petal/sepal instance."""

    pitch: float = 0.0
    roll: float = 0.0
    scale: float = 1.0


@dataclass(frozen=True)
class InstancePose:
    """Rest pose of an instance, fixed at build time."""

    index: int
    ring: int
    time_offset: float
    base_tilt: float
    droop: float
    twist: float
    length: float = 1.0


def base_tilt(ring: int) -> float:
    """Inner rings stand more upright, outer rings droop outward."""
    return -(math.pi / 2.0) + 0.6 - ring * 0.22


def wind_strength(ring: int, params: SwayParams = DEFAULT_SWAY) -> float:
    return params.wind_base + ring * params.wind_per_ring


def sway(pose: InstancePose, elapsed: float, params: SwayParams = DEFAULT_SWAY) -> tuple[float, float]:
    """(pitch, roll) for an instance at ``elapsed`` seconds."""
    t = elapsed + pose.time_offset
    wind = wind_strength(pose.ring, params)
    pitch = (
        pose.base_tilt
        + pose.droop
        + math.sin(t * params.pitch_speed + pose.index * params.pitch_index_phase) * wind
    )
    roll = pose.twist + math.cos(
        t * params.roll_speed + pose.index * params.roll_index_phase
    ) * wind * params.roll_ratio
    return pitch, roll


def update_instance(
    state: AnimationState,
    pose: InstancePose,
    elapsed: float,
    heartbeat_scale: float = 1.0,
    params: SwayParams = DEFAULT_SWAY,
) -> AnimationState:
    """Next transform of one petal: sway plus heartbeat-scaled length."""
    elapsed = known(elapsed)
    if elapsed is None:
        return state
    pitch, roll = sway(pose, elapsed, params)
    scale = known(heartbeat_scale)
    if scale is None:
        scale = 1.0
    return replace(state, pitch=pitch, roll=roll, scale=scale * pose.length)


def leaf_roll(elapsed: float, side: int, height: float) -> float:
    return side * LEAF_REST_ROLL + math.sin(elapsed * LEAF_SWAY_SPEED + height) * LEAF_SWAY_AMPLITUDE


def disc_yaw(elapsed: float) -> float:
    return elapsed * DISC_SPIN_SPEED


# ---------------------------------------------------------------------------
# Heartbeat
# ---------------------------------------------------------------------------


class HeartbeatMode(str, Enum):
    IDLE = "idle"
    PULSING = "pulsing"


@dataclass(frozen=True)
class HeartbeatParams:
    threshold_m: float = 1000.0
    bpm_far: float = 60.0
    bpm_near: float = 120.0
    intensity_far: float = 0.03
    intensity_near: float = 0.08
    relax: float = 0.05  # per-frame pull toward scale 1 while idle
    ramp_seconds: float = 0.5  # envelope rise time after entering PULSING
    second_beat_offset: float = 0.6
    second_beat_gain: float = 0.5


DEFAULT_HEARTBEAT = HeartbeatParams()


@dataclass(frozen=True)
class HeartbeatState:
    scale: float = 1.0
    phase: float = 0.0  # radians, kept in [0, 2 pi)
    envelope: float = 0.0  # 0..1 blend between rest and full pulse
    mode: HeartbeatMode = HeartbeatMode.IDLE


def closeness(distance_m, params: HeartbeatParams = DEFAULT_HEARTBEAT) -> Optional[float]:
    """0 at the threshold distance, 1 at zero distance, None when out of range or unknown."""
    distance = known(distance_m)
    if distance is None or distance > params.threshold_m:
        return None
    return 1.0 - min(max(distance, 0.0) / params.threshold_m, 1.0)


def heartbeat_bpm(distance_m, params: HeartbeatParams = DEFAULT_HEARTBEAT) -> Optional[float]:
    c = closeness(distance_m, params)
    if c is None:
        return None
    return params.bpm_far + c * (params.bpm_near - params.bpm_far)


def pulse_intensity(distance_m, params: HeartbeatParams = DEFAULT_HEARTBEAT) -> float:
    """Peak scale excursion per beat; zero when not pulsing."""
    c = closeness(distance_m, params)
    if c is None:
        return 0.0
    return params.intensity_far + c * (params.intensity_near - params.intensity_far)


def heartbeat_waveform(phase: float, params: HeartbeatParams = DEFAULT_HEARTBEAT) -> float:
    """Double-bump "lub-dub" shape, 0 at rest."""
    beat1 = max(0.0, math.sin(phase)) ** 4
    beat2 = max(0.0, math.sin(phase + params.second_beat_offset)) ** 8 * params.second_beat_gain
    return beat1 + beat2


def update_heartbeat(
    state: HeartbeatState,
    distance_m,
    dt: float,
    params: HeartbeatParams = DEFAULT_HEARTBEAT,
) -> HeartbeatState:
    """Advance the heartbeat by one frame.

    IDLE (distance unknown or beyond the threshold): scale and envelope both
    relax toward rest by ``relax`` per frame and the phase is frozen. PULSING:
    the phase advances at bpm / 60 Hz and the envelope ramps back up, so the
    scale never jumps when the distance crosses the threshold.
    """
    dt = known(dt)
    dt = dt if dt is not None and dt > 0.0 else 0.0

    bpm = heartbeat_bpm(distance_m, params)
    if bpm is None:
        return HeartbeatState(
            scale=state.scale + (1.0 - state.scale) * params.relax,
            phase=state.phase,
            envelope=state.envelope * (1.0 - params.relax),
            mode=HeartbeatMode.IDLE,
        )

    frequency = bpm / 60.0
    phase = (state.phase + dt * frequency * TWO_PI) % TWO_PI
    ramp = dt / params.ramp_seconds if params.ramp_seconds > 0 else 1.0
    envelope = min(1.0, state.envelope + ramp)
    intensity = pulse_intensity(distance_m, params)
    scale = 1.0 + heartbeat_waveform(phase, params) * intensity * envelope
    return HeartbeatState(scale=scale, phase=phase, envelope=envelope, mode=HeartbeatMode.PULSING)


# ---------------------------------------------------------------------------
# Bearing tracking
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RotationParams:
    residual: float = 0.001  # fraction of the gap left after one second (before gain)
    gain: float = 0.8


DEFAULT_ROTATION = RotationParams()


@dataclass(frozen=True)
class RotationTrackerState:
    yaw: float = 0.0  # radians


def relative_angle(target_bearing_deg, device_heading_deg) -> Optional[float]:
    """Bearing relative to where the device points, in radians [0, 2 pi).

    None when the bearing is unknown; an unknown heading counts as north.
    """
    bearing = known(target_bearing_deg)
    if bearing is None:
        return None
    heading = known(device_heading_deg)
    if heading is None:
        heading = 0.0
    return math.radians((bearing - heading + 360.0) % 360.0)


def damping_factor(dt: float, params: RotationParams = DEFAULT_ROTATION) -> float:
    """Frame-rate independent interpolation weight: 1 - residual^dt."""
    return 1.0 - params.residual ** dt


def lerp(a: float, b: float, t: float) -> float:
    return a + (b - a) * t


def update_rotation(
    state: RotationTrackerState,
    target_bearing_deg,
    device_heading_deg,
    dt: float,
    params: RotationParams = DEFAULT_ROTATION,
) -> RotationTrackerState:
    """Ease the yaw toward the relative bearing."""
    target = relative_angle(target_bearing_deg, device_heading_deg)
    dt = known(dt)
    if target is None or dt is None or dt <= 0.0:
        return state
    weight = damping_factor(dt, params) * params.gain
    return RotationTrackerState(yaw=lerp(state.yaw, target, weight))

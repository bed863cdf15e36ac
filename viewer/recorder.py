"""Recording of per-frame flower animation state."""

import json

from sunflower.scene import FlowerState


class AnimationRecorder:
    """Records yaw and heartbeat values over time for later inspection.

    Usage:
        recorder = AnimationRecorder()
        recorder.start()
        # Each frame:
        recorder.capture(flower.update(inputs), inputs)
        recorder.stop()
        recorder.save("animation.json")
    """

    def __init__(self):
        self.frames: list[dict] = []
        self.recording = False

    def start(self):
        """Begin recording frames."""
        self.frames = []
        self.recording = True

    def stop(self):
        """Stop recording."""
        self.recording = False

    def toggle(self):
        """Toggle recording on/off. Returns new recording state."""
        if self.recording:
            self.stop()
        else:
            self.start()
        return self.recording

    def capture(self, state: FlowerState, inputs=None):
        """Record a single frame's animation state.

        Args:
            state: flower state after the frame's update
            inputs: the FrameInputs that produced it (optional)
        """
        if not self.recording:
            return
        frame = {
            "elapsed": state.elapsed,
            "yaw": state.rotation.yaw,
            "heartbeat_scale": state.heartbeat.scale,
            "heartbeat_mode": state.heartbeat.mode.value,
        }
        if inputs is not None:
            frame["distance_m"] = inputs.distance_m
            frame["target_bearing_deg"] = inputs.target_bearing_deg
            frame["device_heading_deg"] = inputs.device_heading_deg
        self.frames.append(frame)

    @property
    def frame_count(self) -> int:
        return len(self.frames)

    def save(self, path: str):
        """Save recorded frames to a JSON file."""
        data = {
            "num_frames": len(self.frames),
            "frames": self.frames,
        }
        with open(path, "w") as f:
            json.dump(data, f, indent=2)

    @staticmethod
    def load(path: str) -> list[dict]:
        """Load recorded frames from JSON."""
        with open(path) as f:
            data = json.load(f)
        return data["frames"]

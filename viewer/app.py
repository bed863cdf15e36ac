"""Interactive flower viewer.

Controls:
    Left/Right: Orbit the camera
    Up/Down: Move the simulated partner closer / further (drives the heartbeat)
    +/-: Zoom in/out
    R: Toggle recording
    ESC: Quit

Headless mode (--headless):
    Simulates frames without opening a window, useful for testing.
"""

import argparse
import logging
import math
import sys
from typing import Optional

from sunflower.animation import FrameInputs
from sunflower.geo import SimulatedHeading
from sunflower.logging_config import setup_logging
from sunflower.scene import FlowerState, build_flower
from viewer.recorder import AnimationRecorder


def run_headless(
    num_frames: int = 180,
    tier: str = "desktop",
    distance: Optional[float] = None,
    bearing: Optional[float] = 90.0,
    heading: Optional[float] = None,
    fps: float = 60.0,
    output_path: Optional[str] = None,
    verbose: bool = True,
) -> list[FlowerState]:
    """Build a flower and simulate ``num_frames`` animation frames.

    Args:
        num_frames: Number of frames to simulate
        tier: Capability tier name
        distance: Partner distance in meters (None = unknown)
        bearing: Target bearing in degrees (None = unknown)
        heading: Fixed device heading; None drifts it like a sensorless device
        fps: Simulated frame rate
        output_path: If set, save the recorded frames to this JSON file
        verbose: Print a summary

    Returns:
        Flower state after each frame
    """
    flower = build_flower(tier)
    recorder = AnimationRecorder()
    recorder.start()
    simulated = SimulatedHeading()

    dt = 1.0 / fps
    states = []
    for i in range(num_frames):
        inputs = FrameInputs(
            elapsed=(i + 1) * dt,
            dt=dt,
            target_bearing_deg=bearing,
            device_heading_deg=heading if heading is not None else simulated.advance(dt),
            distance_m=distance,
        )
        state = flower.update(inputs)
        recorder.capture(state, inputs)
        states.append(state)

    recorder.stop()
    if output_path:
        recorder.save(output_path)

    if verbose:
        meshes = flower.meshes()
        vertices = sum(m.vertex_count for m in meshes.values())
        print(f"Tier: {tier}  meshes: {len(meshes)}  vertices: {vertices}")
        if flower.used_stem_fallback:
            print("Stem: fallback tube")
        if states:
            last = states[-1]
            print(f"After {num_frames} frames: yaw={math.degrees(last.rotation.yaw):.1f} deg  "
                  f"heartbeat={last.heartbeat.scale:.4f} ({last.heartbeat.mode.value})")

    flower.dispose()
    return states


def run_viewer(tier: str = "desktop", distance: float = 500.0, bearing: float = 90.0):
    """Launch the interactive OpenGL viewer."""
    try:
        import pygame
        from pygame.locals import (
            DOUBLEBUF,
            HWSURFACE,
            KEYDOWN,
            OPENGL,
            QUIT,
            K_DOWN,
            K_ESCAPE,
            K_EQUALS,
            K_KP_MINUS,
            K_KP_PLUS,
            K_LEFT,
            K_MINUS,
            K_PLUS,
            K_RIGHT,
            K_UP,
            K_r,
        )
        import OpenGL.GL as GL
        import OpenGL.GLU as GLU
    except ImportError as e:
        print(f"Error: {e}")
        print("Install pygame and PyOpenGL: pip install pygame PyOpenGL")
        sys.exit(1)

    from viewer.flower_mesh import FlowerRenderer

    pygame.init()
    width, height = 800, 600
    pygame.display.set_mode((width, height), DOUBLEBUF | OPENGL | HWSURFACE)
    pygame.display.set_caption("Sunflower - Arrows orbit/distance | +/- zoom | R=Record | ESC=Quit")

    GL.glViewport(0, 0, width, height)

    flower = build_flower(tier)
    renderer = FlowerRenderer(flower)
    renderer.init_gl()

    recorder = AnimationRecorder()
    simulated = SimulatedHeading()

    orbit = 0.0  # degrees
    fov = 45.0
    clock = pygame.time.Clock()
    elapsed = 0.0
    running = True

    while running:
        dt = clock.tick(60) / 1000.0
        elapsed += dt

        for event in pygame.event.get():
            if event.type == QUIT:
                running = False
            elif event.type == KEYDOWN:
                if event.key == K_ESCAPE:
                    running = False
                elif event.key in (K_PLUS, K_EQUALS, K_KP_PLUS):
                    fov = max(10.0, fov - 2.0)
                elif event.key in (K_MINUS, K_KP_MINUS):
                    fov = min(120.0, fov + 2.0)
                elif event.key == K_r:
                    is_recording = recorder.toggle()
                    state = "STARTED" if is_recording else f"STOPPED ({recorder.frame_count} frames)"
                    print(f"Recording {state}")
                    if not is_recording and recorder.frame_count > 0:
                        recorder.save("animation.json")
                        print("Saved animation.json")

        keys = pygame.key.get_pressed()
        if keys[K_LEFT]:
            orbit -= 60.0 * dt
        if keys[K_RIGHT]:
            orbit += 60.0 * dt
        if keys[K_UP]:
            distance = max(0.0, distance - 400.0 * dt)
        if keys[K_DOWN]:
            distance = distance + 400.0 * dt

        inputs = FrameInputs(
            elapsed=elapsed,
            dt=dt,
            target_bearing_deg=bearing,
            device_heading_deg=simulated.advance(dt),
            distance_m=distance,
        )
        state = flower.update(inputs)
        if recorder.recording:
            recorder.capture(state, inputs)

        GL.glMatrixMode(GL.GL_PROJECTION)
        GL.glLoadIdentity()
        GLU.gluPerspective(fov, width / height, 0.1, 100.0)
        GL.glMatrixMode(GL.GL_MODELVIEW)

        GL.glClear(GL.GL_COLOR_BUFFER_BIT | GL.GL_DEPTH_BUFFER_BIT)
        GL.glLoadIdentity()
        eye_x = 4.0 * math.sin(math.radians(orbit))
        eye_z = 4.0 * math.cos(math.radians(orbit))
        GLU.gluLookAt(eye_x, 0.3, eye_z, 0.0, -0.6, 0.0, 0.0, 1.0, 0.0)

        renderer.render()
        pygame.display.set_caption(
            f"Sunflower - {distance:.0f} m  heartbeat {state.heartbeat.scale:.3f}  "
            f"yaw {math.degrees(state.rotation.yaw):.0f} deg"
        )
        pygame.display.flip()

    renderer.cleanup()
    flower.dispose()
    pygame.quit()


def main():
    parser = argparse.ArgumentParser(description="Procedural Sunflower Viewer")
    parser.add_argument("--headless", action="store_true", help="Run without display")
    parser.add_argument("--tier", default="desktop", choices=["low", "mobile", "desktop"],
                        help="Capability tier")
    parser.add_argument("--num_frames", type=int, default=180, help="Frames for headless mode")
    parser.add_argument("--distance", type=float, default=None, help="Partner distance in meters")
    parser.add_argument("--bearing", type=float, default=90.0, help="Target bearing in degrees")
    parser.add_argument("--output", default=None, help="Save recorded frames to this JSON file")
    parser.add_argument("--debug", action="store_true", help="Verbose logging")
    args = parser.parse_args()

    setup_logging(logging.DEBUG if args.debug else logging.INFO)

    if args.headless:
        states = run_headless(args.num_frames, args.tier, args.distance, args.bearing,
                              output_path=args.output)
        print(f"Headless: simulated {len(states)} frames"
              + (f" -> {args.output}" if args.output else ""))
    else:
        run_viewer(args.tier, args.distance if args.distance is not None else 500.0, args.bearing)


if __name__ == "__main__":
    main()

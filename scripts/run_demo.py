#!/usr/bin/env python3
"""
Run the headtrack pipeline against a scripted scene.

A single moving enemy is tracked from a viewer at the origin facing +Z.
Time is driven by a manual clock so the run is instant and reproducible.

Usage:
    python scripts/run_demo.py
    python scripts/run_demo.py --profile precise --seconds 3 --trigger-bot
"""

import argparse
import logging
import sys
from pathlib import Path

# Add repository root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from headtrack import (
    BoundingBox,
    Entity,
    ManualClock,
    PROFILES,
    PoseHints,
    RecordingInputSink,
    Vector3D,
    ViewerState,
    create_from_profile,
)


def build_scene(t_s: float) -> list:
    """Entities at time t_s (seconds)."""
    velocity = Vector3D(1.0, 0.0, 0.0)
    return [
        Entity(
            entity_id="enemy_1",
            position=Vector3D(10.0, 0.0, 20.0) + velocity * t_s,
            entity_type="enemy",
            velocity=velocity,
            health=80.0,
            max_health=100.0,
            pose=PoseHints(
                bounding_box=BoundingBox(
                    min=Vector3D(-0.5, 0.0, -0.5),
                    max=Vector3D(0.5, 1.8, 0.5)
                )
            ),
        ),
        Entity(
            entity_id="ally_1",
            position=Vector3D(-5.0, 0.0, 15.0),
            entity_type="friendly",
        ),
    ]


def main():
    parser = argparse.ArgumentParser(
        description="Run the headtrack targeting pipeline on a scripted scene",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--profile",
        default="balanced",
        choices=sorted(PROFILES),
        help="Targeting profile (default: balanced)",
    )
    parser.add_argument(
        "--seconds",
        type=float,
        default=5.0,
        help="Simulated activation time in seconds (default: 5)",
    )
    parser.add_argument(
        "--tick-ms",
        type=float,
        default=16.0,
        help="Host tick period in milliseconds (default: 16)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=42,
        help="Random seed for humanization (default: 42)",
    )
    parser.add_argument(
        "--trigger-bot",
        action="store_true",
        help="Enable trigger assist",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Log every event",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    clock = ManualClock()
    sink = RecordingInputSink()
    controller = create_from_profile(args.profile, seed=args.seed, clock=clock, input_sink=sink)
    controller.options.controller.trigger_bot = args.trigger_bot
    controller.events.add_callback(lambda event: print(f"  {event}"))

    print(f"Profile: {args.profile}")
    controller.activate()

    steps = int(args.seconds * 1000.0 / args.tick_ms)
    for step in range(steps):
        t_s = clock.now_ms() / 1000.0
        controller.tick(ViewerState(
            position=Vector3D.zero(),
            direction=Vector3D.unit_z(),
            entities=build_scene(t_s),
        ))
        if (step + 1) % 60 == 0:
            delta = sink.last_delta
            if delta is not None:
                print(f"  t={t_s:.2f}s yaw={delta.yaw:.4f} pitch={delta.pitch:.4f}")
        clock.advance(args.tick_ms)

    controller.deactivate()

    stats = controller.get_stats()
    print("\nStats:")
    for key, value in stats.items():
        print(f"  {key}: {value}")
    print(f"  deltas_sent: {len(sink.deltas)}")
    print(f"  fire_signals: {sink.fire_count}")


if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""Replay a recorded GPX track through the sample filter and distance engine.

Prints how many fixes would be persisted and the client-side trip distance,
which is handy for tuning filter thresholds against real drives.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from tracking.services.distance import accumulate
from tracking.services.gpx_replay import load_gpx_samples, replay_through_filter
from tracking.services.sample_filter import filter_for_distance


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Replay a GPX file through the trip tracking filters.",
    )
    parser.add_argument("gpx_file", type=Path, help="Path to the GPX file to replay.")
    parser.add_argument(
        "--speedup",
        type=float,
        default=0.0,
        help="Replay speed multiplier; 0 (default) replays without delays.",
    )
    parser.add_argument(
        "--default-accuracy",
        type=float,
        default=5.0,
        help="Accuracy in metres for points without HDOP.",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    return parser.parse_args()


async def _run(args: argparse.Namespace) -> int:
    if not args.gpx_file.exists():
        print(f"GPX file not found: {args.gpx_file}")
        return 1

    samples = load_gpx_samples(args.gpx_file, default_accuracy=args.default_accuracy)
    if not samples:
        print("No track points found.")
        return 1

    route = await replay_through_filter(samples, speedup=args.speedup)
    distance_points = filter_for_distance(route)
    distance_km = accumulate(route)

    print(f"Samples in file:        {len(samples)}")
    print(f"Admitted route points:  {len(route)}")
    print(f"Points used for distance: {len(distance_points)}")
    print(f"Client distance:        {distance_km:.3f} km")
    return 0


def main() -> int:
    load_dotenv()
    args = parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return asyncio.run(_run(args))


if __name__ == "__main__":
    raise SystemExit(main())

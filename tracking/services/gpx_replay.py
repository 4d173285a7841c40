"""GPX helpers for replaying recorded tracks through the pipeline."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from pathlib import Path
from typing import IO, TYPE_CHECKING

import gpxpy
import gpxpy.gpx

from date_utils import ensure_utc
from tracking.services.platform import WatcherOptions
from tracking.services.sample_filter import admit
from trips.models import LocationSample, RoutePoint

if TYPE_CHECKING:
    from collections.abc import Sequence

    from tracking.services.platform import LocationCallback

logger = logging.getLogger(__name__)

# Typical user-equivalent range error; multiplied by HDOP for an accuracy estimate.
UERE_METERS = 5.0


def _accuracy_for(point: gpxpy.gpx.GPXTrackPoint, default_accuracy: float) -> float:
    if point.horizontal_dilution:
        return float(point.horizontal_dilution) * UERE_METERS
    return default_accuracy


def load_gpx_samples(
    source: str | Path | IO[str],
    *,
    default_accuracy: float = UERE_METERS,
    fallback_interval_ms: int = 1000,
) -> list[LocationSample]:
    """Read every track point of a GPX document as a :class:`LocationSample`.

    Points without a time are spaced ``fallback_interval_ms`` after the
    previous point.
    """
    if isinstance(source, (str, Path)):
        with Path(source).open(encoding="utf-8") as handle:
            gpx = gpxpy.parse(handle)
    else:
        gpx = gpxpy.parse(source)

    samples: list[LocationSample] = []
    last_ts: int | None = None
    for track in gpx.tracks:
        for segment in track.segments:
            for point in segment.points:
                when = ensure_utc(point.time)
                if when is not None:
                    ts = int(when.timestamp() * 1000)
                elif last_ts is not None:
                    ts = last_ts + fallback_interval_ms
                else:
                    ts = 0
                samples.append(
                    LocationSample(
                        latitude=point.latitude,
                        longitude=point.longitude,
                        accuracy=_accuracy_for(point, default_accuracy),
                        timestamp=ts,
                        speed=point.speed,
                    ),
                )
                last_ts = ts

    logger.debug("Loaded %d samples from GPX", len(samples))
    return samples


class GpxReplayWatcher:
    """Location watcher that replays recorded samples on a schedule.

    ``speedup`` compresses the recorded gaps between samples; a speedup of 0
    delivers everything back to back.
    """

    def __init__(self, samples: Sequence[LocationSample], *, speedup: float = 1.0) -> None:
        self._samples = list(samples)
        self._speedup = speedup
        self._task: asyncio.Task[None] | None = None
        self.delivered = 0

    async def start(self, callback: LocationCallback, options: WatcherOptions) -> str:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run(callback))
            logger.info(
                "Replaying %d GPX samples (distance filter %.0fm ignored)",
                len(self._samples),
                options.distance_filter,
            )
        return "gpx-replay"

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None

    async def wait_finished(self) -> None:
        if self._task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._task

    async def _run(self, callback: LocationCallback) -> None:
        previous: LocationSample | None = None
        for sample in self._samples:
            if previous is not None and self._speedup > 0:
                gap_s = max(0, sample.timestamp - previous.timestamp) / 1000.0
                await asyncio.sleep(gap_s / self._speedup)
            try:
                await callback(sample)
            except Exception:
                logger.exception("GPX replay callback failed")
            self.delivered += 1
            previous = sample


async def replay_through_filter(
    samples: Sequence[LocationSample],
    *,
    speedup: float = 0.0,
) -> list[RoutePoint]:
    """Replay ``samples`` and return the route the admission filter would keep."""
    route: list[RoutePoint] = []

    async def on_location(sample: LocationSample) -> None:
        if admit(route[-1] if route else None, sample):
            route.append(RoutePoint.from_sample(sample))

    watcher = GpxReplayWatcher(samples, speedup=speedup)
    await watcher.start(on_location, WatcherOptions())
    try:
        await watcher.wait_finished()
    finally:
        await watcher.stop()
    logger.info("Admitted %d of %d replayed samples", len(route), watcher.delivered)
    return route

"""
Background tracking context for one active trip.

A :class:`BackgroundTracker` is created when tracking starts and discarded
when it stops. It owns the watcher handle, the offline queue, the sync
flusher and the permission escalation timer. Nothing here outlives ``stop()``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from config import BACKGROUND_DISTANCE_FILTER_M
from core.constants import (
    ESCALATION_DELAY_SECONDS,
    FLUSH_INTERVAL_SECONDS,
    FLUSH_POINT_THRESHOLD,
)
from tracking.services.offline_queue import OfflineQueue
from tracking.services.permissions import PermissionEscalator, PermissionStatus
from tracking.services.platform import WatcherOptions
from tracking.services.sample_filter import point_distance_km
from tracking.services.sync_flusher import SyncFlusher

if TYPE_CHECKING:
    from collections.abc import Callable

    from tracking.services.local_store import KeyValueStore
    from tracking.services.platform import (
        LocationWatcher,
        PermissionBackend,
        PlatformSignals,
    )
    from trips.models import LocationSample, RoutePoint
    from trips.services.trip_api_client import TripApiClient

    SampleHandler = Callable[[LocationSample], RoutePoint | None]

logger = logging.getLogger(__name__)


@dataclass
class TrackingState:
    """Diagnostic snapshot of a tracking run."""

    active: bool = False
    permission: str | None = None
    last_point: RoutePoint | None = None
    queued: int = 0
    error: str | None = None
    client_distance_km: float = 0.0


class BackgroundTracker:
    """Feeds watcher locations through ``on_sample`` into the offline queue."""

    def __init__(
        self,
        trip_id: str,
        *,
        watcher: LocationWatcher,
        queue: OfflineQueue,
        flusher: SyncFlusher,
        permissions: PermissionEscalator,
        on_sample: SampleHandler,
        options: WatcherOptions | None = None,
    ) -> None:
        self.trip_id = trip_id
        self.queue = queue
        self.flusher = flusher
        self.permissions = permissions
        self.state = TrackingState()
        self._watcher = watcher
        self._on_sample = on_sample
        self._options = options or WatcherOptions()

    @property
    def active(self) -> bool:
        return self.state.active

    async def start(self) -> bool:
        """Begin observation; returns False (and records the error) on failure."""
        if self.state.active:
            return True

        self.state.queued = await self.queue.load()
        try:
            status = await self.permissions.request_permissions(always=False)
            self.state.permission = status.value
            if status == PermissionStatus.DENIED:
                logger.warning("Location permission denied; background samples may not arrive")
            await self._watcher.start(self._on_location, self._options)
        except Exception as exc:
            self.state.error = str(exc) or "Failed to start tracking"
            logger.exception("Failed to start background tracking for trip %s", self.trip_id)
            return False

        self.state.active = True
        self.state.error = None
        self.flusher.start()
        self.permissions.schedule_escalation()
        logger.info("Background tracking started for trip %s", self.trip_id)
        return True

    async def stop(self) -> None:
        """Halt observation, cancel timers and attempt one last flush."""
        if not self.state.active:
            return
        self.state.active = False
        self.permissions.cancel()
        try:
            await self._watcher.stop()
        except Exception:
            logger.warning("Failed removing location watcher", exc_info=True)
        await self.flusher.stop(final_flush=True)
        self.state.queued = len(self.queue)
        logger.info(
            "Background tracking stopped for trip %s (%d points still queued)",
            self.trip_id,
            self.state.queued,
        )

    async def flush(self) -> bool:
        delivered = await self.flusher.flush("manual")
        self.state.queued = len(self.queue)
        return delivered

    async def escalate_to_always(self) -> str:
        status = await self.permissions.request_permissions(always=True)
        self.state.permission = status.value
        return status.value

    async def _on_location(self, sample: LocationSample) -> None:
        if not self.state.active:
            return
        point = self._on_sample(sample)
        if point is None:
            return

        previous = self.state.last_point
        size = await self.queue.enqueue(point)
        if previous is not None:
            self.state.client_distance_km += point_distance_km(previous, point)
        self.state.last_point = point
        self.state.queued = size
        self.flusher.notify_enqueued(size)


@dataclass
class BackgroundTrackerFactory:
    """Builds a fresh :class:`BackgroundTracker` per tracking run."""

    api: TripApiClient
    watcher: LocationWatcher
    store: KeyValueStore
    signals: PlatformSignals
    permission_backend: PermissionBackend
    platform: str
    options: WatcherOptions = field(
        default_factory=lambda: WatcherOptions(distance_filter=BACKGROUND_DISTANCE_FILTER_M),
    )
    flush_threshold: int = FLUSH_POINT_THRESHOLD
    flush_interval_seconds: float = FLUSH_INTERVAL_SECONDS
    escalation_delay_seconds: float = ESCALATION_DELAY_SECONDS

    def __call__(self, trip_id: str, on_sample: SampleHandler) -> BackgroundTracker:
        queue = OfflineQueue(self.store)

        async def transmit(points: list[RoutePoint]) -> None:
            await self.api.append_route_points(trip_id, points)

        flusher = SyncFlusher(
            queue,
            transmit,
            self.signals,
            threshold=self.flush_threshold,
            interval_seconds=self.flush_interval_seconds,
        )
        permissions = PermissionEscalator(
            self.permission_backend,
            self.platform,
            escalation_delay_seconds=self.escalation_delay_seconds,
        )
        return BackgroundTracker(
            trip_id,
            watcher=self.watcher,
            queue=queue,
            flusher=flusher,
            permissions=permissions,
            on_sample=on_sample,
            options=self.options,
        )

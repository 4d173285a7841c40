"""
Trip session controller.

Owns the in-memory active trip and is the only writer of its route and
provisional metrics. Foreground operations (start, end, delete) never raise
to the caller: they return a :class:`TripOperationResult`, and local state is
only committed once the remote call has succeeded.

Session states::

    no-trip --start--> starting --ok--> active --end--> ending --ok--> no-trip
                          |                               |
                          +--fail--> no-trip              +--fail--> active
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import math
from enum import Enum
from typing import TYPE_CHECKING, Any

from core.constants import ROUTE_PUSH_EVERY_POINTS
from core.exceptions import (
    ConflictingStateError,
    TripTrackerError,
    ValidationError,
)
from date_utils import now_epoch_ms
from tracking.services.distance import compute_trip_metrics
from tracking.services.sample_filter import admit
from trips.models import (
    LocationSample,
    RoutePoint,
    Trip,
    TripOperationResult,
    TripStatus,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Coroutine

    from tracking.services.background_tracking import (
        BackgroundTracker,
        BackgroundTrackerFactory,
        TrackingState,
    )
    from tracking.services.location_service import LocationService
    from trips.services.trip_api_client import TripApiClient

logger = logging.getLogger(__name__)

HISTORY_PAGE_SIZE = 1000


class TripSessionState(Enum):
    NO_TRIP = "no-trip"
    STARTING = "starting"
    ACTIVE = "active"
    ENDING = "ending"


def _as_odometer(value: Any, label: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        msg = f"{label} must be a number"
        raise ValidationError(msg, {"value": value})
    reading = float(value)
    if not math.isfinite(reading) or reading < 0:
        msg = f"{label} must be a non-negative number"
        raise ValidationError(msg, {"value": value})
    return reading


def validate_start(purpose: Any, start_odometer: Any) -> tuple[str, float]:
    if not isinstance(purpose, str) or not purpose.strip():
        msg = "Trip purpose is required"
        raise ValidationError(msg)
    return purpose.strip(), _as_odometer(start_odometer, "Start odometer")


def validate_end(end_odometer: Any, trip: Trip) -> float:
    reading = _as_odometer(end_odometer, "End odometer")
    if reading < trip.startOdometer:
        msg = (
            f"End odometer ({reading:g}) cannot be lower than "
            f"start odometer ({trip.startOdometer:g})"
        )
        raise ValidationError(msg, {"start": trip.startOdometer, "end": reading})
    return reading


class TripSessionController:
    """Orchestrates trip start/end, sample ingestion and background tracking."""

    def __init__(
        self,
        api: TripApiClient,
        location: LocationService,
        tracker_factory: BackgroundTrackerFactory,
        *,
        clock: Callable[[], int] = now_epoch_ms,
        route_push_every: int = ROUTE_PUSH_EVERY_POINTS,
    ) -> None:
        self._api = api
        self._location = location
        self._tracker_factory = tracker_factory
        self._clock = clock
        self._route_push_every = route_push_every

        self.state = TripSessionState.NO_TRIP
        self.current_trip: Trip | None = None
        self.trip_history: list[Trip] = []

        self._tracker: BackgroundTracker | None = None
        self._route_push_task: asyncio.Task[None] | None = None
        self._pending_route: tuple[str, list[RoutePoint]] | None = None
        self._background: set[asyncio.Task[Any]] = set()

    @property
    def is_active(self) -> bool:
        return self.state == TripSessionState.ACTIVE and self.current_trip is not None

    @property
    def tracking_state(self) -> TrackingState | None:
        return self._tracker.state if self._tracker is not None else None

    @property
    def tracker(self) -> BackgroundTracker | None:
        return self._tracker

    async def load(self) -> None:
        """Load trip history and resume tracking of a trip left active."""
        await self.refresh_history()
        try:
            active = await self._api.get_active_trip()
        except TripTrackerError as exc:
            logger.warning("Could not check for an active trip: %s", exc.message)
            return

        if active is None or self.state != TripSessionState.NO_TRIP:
            return

        self.current_trip = active
        self.state = TripSessionState.ACTIVE
        logger.info("Resuming active trip %s", active.id)
        await self._start_tracking(active)

    async def refresh_history(self) -> list[Trip]:
        try:
            page = await self._api.list_trips(
                TripStatus.COMPLETED,
                page=1,
                limit=HISTORY_PAGE_SIZE,
            )
        except TripTrackerError as exc:
            logger.warning("Failed to refresh trip history: %s", exc.message)
            return self.trip_history
        self.trip_history = [t for t in page.data if t.status == TripStatus.COMPLETED]
        return self.trip_history

    async def start_trip(self, purpose: Any, start_odometer: Any) -> TripOperationResult:
        try:
            purpose, odometer = validate_start(purpose, start_odometer)
            self._ensure_can_start()
        except TripTrackerError as exc:
            return TripOperationResult.failed(exc.message)

        self.state = TripSessionState.STARTING
        try:
            fix = await self._location.get_current_position()
            start_point = RoutePoint.from_sample(fix)
            trip = await self._api.create_trip(purpose, odometer, [start_point])
        except TripTrackerError as exc:
            self.state = TripSessionState.NO_TRIP
            logger.error("Failed to start trip: %s", exc.message)
            return TripOperationResult.failed(exc.message)
        except Exception:
            self.state = TripSessionState.NO_TRIP
            logger.exception("Unexpected error starting trip")
            return TripOperationResult.failed("Failed to start trip")

        if not trip.route:
            trip = trip.model_copy(update={"route": [start_point]})
        self.current_trip = trip
        self.state = TripSessionState.ACTIVE
        logger.info("Trip %s started (%s, odometer %g)", trip.id, purpose, odometer)

        await self._start_tracking(trip)
        await self.refresh_history()
        return TripOperationResult.ok(trip)

    def handle_sample(self, sample: LocationSample) -> RoutePoint | None:
        """Admit one sample into the active trip; returns the appended point."""
        trip = self.current_trip
        if self.state != TripSessionState.ACTIVE or trip is None:
            return None

        previous = trip.route[-1] if trip.route else None
        if not admit(previous, sample):
            return None

        point = RoutePoint.from_sample(sample)
        route = [*trip.route, point]
        now_ms = self._clock()
        start_ms = trip.start_epoch_ms() or route[0].timestamp
        metrics = compute_trip_metrics(route, start_ms, now_ms)
        self.current_trip = trip.model_copy(
            update={
                "route": route,
                "distance": metrics.distance,
                "duration": metrics.duration,
                "averageSpeed": metrics.averageSpeed,
            },
        )

        self._spawn(self._location.remember(sample))
        if len(route) % self._route_push_every == 0:
            self._schedule_route_push(trip.id, route)
        return point

    async def end_trip(self, end_odometer: Any) -> TripOperationResult:
        try:
            trip = self._ensure_can_end()
            odometer = validate_end(end_odometer, trip)
        except TripTrackerError as exc:
            return TripOperationResult.failed(exc.message)

        self.state = TripSessionState.ENDING
        try:
            fix = await self._location.get_current_position()
            final_route = [*trip.route, RoutePoint.from_sample(fix)]
            if self._tracker is not None:
                await self._tracker.flush()
            await self._settle_route_push()
            await self._api.update_route(trip.id, final_route)
            completed = await self._api.end_trip(trip.id, odometer)
        except TripTrackerError as exc:
            self.state = TripSessionState.ACTIVE
            logger.error("Failed to end trip %s: %s", trip.id, exc.message)
            return TripOperationResult.failed(exc.message)
        except Exception:
            self.state = TripSessionState.ACTIVE
            logger.exception("Unexpected error ending trip %s", trip.id)
            return TripOperationResult.failed("Failed to end trip")

        self.current_trip = None
        self.state = TripSessionState.NO_TRIP
        self.trip_history = [
            completed,
            *(t for t in self.trip_history if t.id != completed.id),
        ]
        logger.info(
            "Trip %s completed: %.2f km in %ds",
            completed.id,
            completed.distance,
            completed.duration,
        )
        await self._stop_tracking()
        return TripOperationResult.ok(completed)

    async def delete_trip(self, trip_id: str) -> TripOperationResult:
        if self.current_trip is not None and self.current_trip.id == trip_id:
            return TripOperationResult.failed(
                "Cannot delete the active trip; end it first",
            )
        try:
            await self._api.delete_trip(trip_id)
        except TripTrackerError as exc:
            logger.error("Failed to delete trip %s: %s", trip_id, exc.message)
            return TripOperationResult.failed(exc.message)
        except Exception:
            logger.exception("Unexpected error deleting trip %s", trip_id)
            return TripOperationResult.failed("Failed to delete trip")

        self.trip_history = [t for t in self.trip_history if t.id != trip_id]
        return TripOperationResult.ok()

    async def close(self) -> None:
        """Tear down tracking without ending the trip (process shutdown)."""
        await self._stop_tracking()

    def _ensure_can_start(self) -> None:
        if self.state == TripSessionState.STARTING:
            msg = "Trip start already in progress"
            raise ConflictingStateError(msg)
        if self.current_trip is not None or self.state != TripSessionState.NO_TRIP:
            msg = "A trip is already active; end it before starting a new one"
            raise ConflictingStateError(msg)

    def _ensure_can_end(self) -> Trip:
        if self.state == TripSessionState.ENDING:
            msg = "Trip end already in progress"
            raise ConflictingStateError(msg)
        trip = self.current_trip
        if self.state != TripSessionState.ACTIVE or trip is None:
            msg = "No active trip"
            raise ConflictingStateError(msg)
        return trip

    async def _start_tracking(self, trip: Trip) -> None:
        tracker = self._tracker_factory(trip.id, self.handle_sample)
        self._tracker = tracker
        if not await tracker.start():
            logger.warning(
                "Trip %s is active but background tracking failed: %s",
                trip.id,
                tracker.state.error,
            )

    async def _stop_tracking(self) -> None:
        self._pending_route = None
        await self._settle_route_push()
        tracker, self._tracker = self._tracker, None
        if tracker is not None:
            await tracker.stop()
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    def _schedule_route_push(self, trip_id: str, route: list[RoutePoint]) -> None:
        # One push at a time; while one is in flight only the newest route waits.
        self._pending_route = (trip_id, route)
        if self._route_push_task is None or self._route_push_task.done():
            self._route_push_task = asyncio.create_task(self._drain_route_pushes())

    async def _drain_route_pushes(self) -> None:
        while self._pending_route is not None:
            trip_id, route = self._pending_route
            self._pending_route = None
            try:
                await self._api.update_route(trip_id, route)
                logger.debug("Pushed %d route points for trip %s", len(route), trip_id)
            except Exception as exc:
                logger.warning("Failed to update GPS points for trip %s: %s", trip_id, exc)

    async def _settle_route_push(self) -> None:
        self._pending_route = None
        task = self._route_push_task
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await task
            self._route_push_task = None

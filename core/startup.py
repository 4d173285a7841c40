"""Runtime assembly and shutdown for a trip tracking process."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from config import BACKGROUND_DISTANCE_FILTER_M, get_tracking_platform
from core.http.session import cleanup_session
from core.redis import close_shared_redis
from tracking.services.background_tracking import BackgroundTrackerFactory
from tracking.services.local_store import LastKnownPositionStore, RedisKeyValueStore
from tracking.services.location_service import LocationService
from tracking.services.platform import PlatformSignals, WatcherOptions
from tracking.services.trip_session import TripSessionController
from trips.services.trip_api_client import TripApiClient

if TYPE_CHECKING:
    from tracking.services.local_store import KeyValueStore
    from tracking.services.platform import (
        LocationWatcher,
        PermissionBackend,
        PositionSource,
    )

logger = logging.getLogger(__name__)


def build_trip_session(
    *,
    watcher: LocationWatcher,
    position_source: PositionSource,
    permission_backend: PermissionBackend,
    signals: PlatformSignals | None = None,
    store: KeyValueStore | None = None,
    api: TripApiClient | None = None,
) -> TripSessionController:
    """Wire a session controller from configuration and platform adapters.

    Raises ``RuntimeError`` when ``TRACKING_PLATFORM`` is not supported.
    """
    platform = get_tracking_platform()
    store = store if store is not None else RedisKeyValueStore()
    api = api if api is not None else TripApiClient()
    signals = signals if signals is not None else PlatformSignals()

    factory = BackgroundTrackerFactory(
        api=api,
        watcher=watcher,
        store=store,
        signals=signals,
        permission_backend=permission_backend,
        platform=platform,
        options=WatcherOptions(distance_filter=BACKGROUND_DISTANCE_FILTER_M),
    )
    location = LocationService(position_source, LastKnownPositionStore(store))
    logger.info("Trip session built for platform %s", platform)
    return TripSessionController(api, location, factory)


async def shutdown_trip_session(
    controller: TripSessionController | None = None,
    *,
    close_http_session: bool = True,
) -> None:
    """Stop tracking (the trip stays active) and close shared clients."""
    try:
        if controller is not None:
            await controller.close()
    finally:
        if close_http_session:
            await cleanup_session()
        await close_shared_redis()

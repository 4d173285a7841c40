import asyncio

import pytest
from trip_fakes import FakeTripApi, point, sample

from tracking.services.background_tracking import BackgroundTrackerFactory
from tracking.services.local_store import MemoryKeyValueStore
from tracking.services.offline_queue import OfflineQueue
from tracking.services.platform import PlatformSignals, WatcherOptions
from tracking.services.platform_fakes import FakeLocationWatcher, FakePermissionBackend
from trips.models import RoutePoint


class StartFailingWatcher(FakeLocationWatcher):
    async def start(self, callback, options):
        raise RuntimeError("location services disabled")


def _factory(
    api: FakeTripApi,
    watcher: FakeLocationWatcher,
    store: MemoryKeyValueStore,
    signals: PlatformSignals,
    *,
    platform: str = "web",
    backend: FakePermissionBackend | None = None,
    threshold: int = 20,
) -> BackgroundTrackerFactory:
    return BackgroundTrackerFactory(
        api=api,
        watcher=watcher,
        store=store,
        signals=signals,
        permission_backend=backend or FakePermissionBackend(),
        platform=platform,
        flush_threshold=threshold,
        flush_interval_seconds=3600,
        escalation_delay_seconds=0.01,
    )


def _accept_all(sample_):
    return RoutePoint.from_sample(sample_)


@pytest.mark.asyncio
async def test_samples_are_queued_and_flushed_on_stop(
    watcher: FakeLocationWatcher,
    memory_store: MemoryKeyValueStore,
    signals: PlatformSignals,
) -> None:
    api = FakeTripApi()
    tracker = _factory(api, watcher, memory_store, signals)("trip-1", _accept_all)

    assert await tracker.start() is True
    assert watcher.options == WatcherOptions(distance_filter=15.0)
    await watcher.emit(sample(0, 0, t=0))
    await watcher.emit(sample(0, 0.0001, t=10_000))

    assert tracker.state.queued == 2
    assert tracker.state.client_distance_km == pytest.approx(0.0111195, rel=1e-3)

    await tracker.stop()

    assert watcher.active is False
    assert [len(batch) for batch in api.appended["trip-1"]] == [2]
    assert tracker.state.queued == 0


@pytest.mark.asyncio
async def test_rejected_samples_are_not_queued(
    watcher: FakeLocationWatcher,
    memory_store: MemoryKeyValueStore,
    signals: PlatformSignals,
) -> None:
    tracker = _factory(FakeTripApi(), watcher, memory_store, signals)("trip-1", lambda s: None)
    await tracker.start()

    await watcher.emit(sample(0, 0, t=0))

    assert len(tracker.queue) == 0
    await tracker.stop()


@pytest.mark.asyncio
async def test_threshold_flush_uses_bulk_endpoint(
    watcher: FakeLocationWatcher,
    memory_store: MemoryKeyValueStore,
    signals: PlatformSignals,
) -> None:
    api = FakeTripApi()
    tracker = _factory(api, watcher, memory_store, signals, threshold=3)("trip-1", _accept_all)
    await tracker.start()

    samples = [sample(0, 0.001 * i, t=10_000 * i) for i in range(3)]
    await watcher.replay(samples)
    for _ in range(5):
        await asyncio.sleep(0)

    assert api.appended["trip-1"] == [[RoutePoint.from_sample(s) for s in samples]]
    await tracker.stop()


@pytest.mark.asyncio
async def test_failed_flush_keeps_points_for_next_run(
    watcher: FakeLocationWatcher,
    memory_store: MemoryKeyValueStore,
    signals: PlatformSignals,
) -> None:
    api = FakeTripApi()
    api.fail("append_route_points")
    factory = _factory(api, watcher, memory_store, signals)
    tracker = factory("trip-1", _accept_all)
    await tracker.start()
    await watcher.emit(sample(0, 0, t=0))

    await tracker.stop()
    assert tracker.state.queued == 1

    restored = OfflineQueue(memory_store)
    assert await restored.load() == 1


@pytest.mark.asyncio
async def test_start_loads_queue_left_by_previous_run(
    watcher: FakeLocationWatcher,
    memory_store: MemoryKeyValueStore,
    signals: PlatformSignals,
) -> None:
    leftover = OfflineQueue(memory_store)
    await leftover.enqueue(point(0, 0, t=0))
    tracker = _factory(FakeTripApi(), watcher, memory_store, signals)("trip-1", _accept_all)

    await tracker.start()

    assert tracker.state.queued == 1
    await tracker.stop()


@pytest.mark.asyncio
async def test_watcher_failure_is_reported(
    memory_store: MemoryKeyValueStore,
    signals: PlatformSignals,
) -> None:
    tracker = _factory(FakeTripApi(), StartFailingWatcher(), memory_store, signals)(
        "trip-1",
        _accept_all,
    )

    assert await tracker.start() is False
    assert tracker.active is False
    assert tracker.state.error == "location services disabled"


@pytest.mark.asyncio
async def test_ios_escalation_is_scheduled_and_cancelled_on_stop(
    watcher: FakeLocationWatcher,
    memory_store: MemoryKeyValueStore,
    signals: PlatformSignals,
) -> None:
    backend = FakePermissionBackend("wheninuse")
    factory = _factory(
        FakeTripApi(),
        watcher,
        memory_store,
        signals,
        platform="ios",
        backend=backend,
    )
    factory.escalation_delay_seconds = 0.05
    tracker = factory("trip-1", _accept_all)

    await tracker.start()
    assert tracker.state.permission == "wheninuse"
    await tracker.stop()
    await asyncio.sleep(0.1)

    assert backend.requests == [["wheninuse"]]


@pytest.mark.asyncio
async def test_stopped_tracker_ignores_late_samples(
    watcher: FakeLocationWatcher,
    memory_store: MemoryKeyValueStore,
    signals: PlatformSignals,
) -> None:
    tracker = _factory(FakeTripApi(), watcher, memory_store, signals)("trip-1", _accept_all)
    await tracker.start()
    callback = watcher.callback
    await tracker.stop()

    await callback(sample(0, 0, t=0))

    assert len(tracker.queue) == 0

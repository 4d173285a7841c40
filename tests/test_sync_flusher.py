import asyncio

import pytest
from trip_fakes import point

from tracking.services.local_store import MemoryKeyValueStore
from tracking.services.offline_queue import OfflineQueue
from tracking.services.platform import PlatformSignals
from tracking.services.sync_flusher import SyncFlusher


class RecordingTransmit:
    def __init__(self) -> None:
        self.batches: list[list] = []
        self.errors: list[Exception] = []
        self.gate: asyncio.Event | None = None

    async def __call__(self, points: list) -> None:
        if self.gate is not None:
            await self.gate.wait()
        if self.errors:
            raise self.errors.pop(0)
        self.batches.append(list(points))


async def _queue_with(store: MemoryKeyValueStore, count: int) -> OfflineQueue:
    queue = OfflineQueue(store)
    for i in range(count):
        await queue.enqueue(point(0, 0.001 * i, t=10_000 * i))
    return queue


async def _settle() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.mark.asyncio
async def test_empty_queue_flush_makes_no_call(
    memory_store: MemoryKeyValueStore,
    signals: PlatformSignals,
) -> None:
    transmit = RecordingTransmit()
    flusher = SyncFlusher(OfflineQueue(memory_store), transmit, signals)

    assert await flusher.flush() is True
    assert transmit.batches == []


@pytest.mark.asyncio
async def test_successful_flush_sends_everything_in_order(
    memory_store: MemoryKeyValueStore,
    signals: PlatformSignals,
) -> None:
    queue = await _queue_with(memory_store, 3)
    expected = queue.snapshot()
    transmit = RecordingTransmit()
    flusher = SyncFlusher(queue, transmit, signals)

    assert await flusher.flush() is True

    assert transmit.batches == [expected]
    assert len(queue) == 0
    assert flusher.flushed_points == 3


@pytest.mark.asyncio
async def test_failed_flush_keeps_queue_intact(
    memory_store: MemoryKeyValueStore,
    signals: PlatformSignals,
) -> None:
    queue = await _queue_with(memory_store, 2)
    before = queue.snapshot()
    transmit = RecordingTransmit()
    transmit.errors.append(ConnectionError("offline"))
    flusher = SyncFlusher(queue, transmit, signals)

    assert await flusher.flush() is False
    assert queue.snapshot() == before
    assert flusher.last_error == "offline"

    assert await flusher.flush() is True
    assert transmit.batches == [before]


@pytest.mark.asyncio
async def test_points_enqueued_during_flush_are_kept(
    memory_store: MemoryKeyValueStore,
    signals: PlatformSignals,
) -> None:
    queue = await _queue_with(memory_store, 2)
    transmit = RecordingTransmit()
    transmit.gate = asyncio.Event()
    flusher = SyncFlusher(queue, transmit, signals)

    pending = asyncio.create_task(flusher.flush())
    await _settle()
    late = point(1, 1, t=99_000)
    await queue.enqueue(late)
    transmit.gate.set()
    await pending

    assert queue.snapshot() == [late]


@pytest.mark.asyncio
async def test_concurrent_flushes_share_one_transmission(
    memory_store: MemoryKeyValueStore,
    signals: PlatformSignals,
) -> None:
    queue = await _queue_with(memory_store, 2)
    transmit = RecordingTransmit()
    transmit.gate = asyncio.Event()
    flusher = SyncFlusher(queue, transmit, signals)

    first = asyncio.create_task(flusher.flush("a"))
    second = asyncio.create_task(flusher.flush("b"))
    await _settle()
    assert flusher.flush_in_progress is True
    transmit.gate.set()

    assert await asyncio.gather(first, second) == [True, True]
    assert len(transmit.batches) == 1


@pytest.mark.asyncio
async def test_threshold_triggers_flush_when_online(
    memory_store: MemoryKeyValueStore,
    signals: PlatformSignals,
) -> None:
    queue = await _queue_with(memory_store, 3)
    transmit = RecordingTransmit()
    flusher = SyncFlusher(queue, transmit, signals, threshold=3, interval_seconds=3600)
    flusher.start()

    flusher.notify_enqueued(2)
    await _settle()
    assert transmit.batches == []

    flusher.notify_enqueued(3)
    await _settle()
    assert len(transmit.batches) == 1
    await flusher.stop(final_flush=False)


@pytest.mark.asyncio
async def test_threshold_ignored_while_offline(memory_store: MemoryKeyValueStore) -> None:
    signals = PlatformSignals(online=False)
    queue = await _queue_with(memory_store, 3)
    transmit = RecordingTransmit()
    flusher = SyncFlusher(queue, transmit, signals, threshold=3, interval_seconds=3600)
    flusher.start()

    flusher.notify_enqueued(3)
    await _settle()

    assert transmit.batches == []
    await flusher.stop(final_flush=False)


@pytest.mark.asyncio
async def test_reconnect_and_visibility_trigger_flushes(
    memory_store: MemoryKeyValueStore,
) -> None:
    signals = PlatformSignals(online=False)
    queue = await _queue_with(memory_store, 1)
    transmit = RecordingTransmit()
    flusher = SyncFlusher(queue, transmit, signals, interval_seconds=3600)
    flusher.start()

    signals.set_visible(False)
    await _settle()
    assert transmit.batches == []

    signals.set_online(True)
    await _settle()
    assert len(transmit.batches) == 1

    await queue.enqueue(point(2, 2, t=50_000))
    signals.set_visible(True)
    await _settle()
    assert len(transmit.batches) == 2
    await flusher.stop(final_flush=False)


@pytest.mark.asyncio
async def test_periodic_flush(memory_store: MemoryKeyValueStore, signals: PlatformSignals) -> None:
    queue = await _queue_with(memory_store, 1)
    transmit = RecordingTransmit()
    flusher = SyncFlusher(queue, transmit, signals, interval_seconds=0.01)
    flusher.start()

    await asyncio.sleep(0.05)

    assert len(transmit.batches) == 1
    await flusher.stop(final_flush=False)


@pytest.mark.asyncio
async def test_stop_removes_listeners_and_flushes_once_more(
    memory_store: MemoryKeyValueStore,
    signals: PlatformSignals,
) -> None:
    queue = OfflineQueue(memory_store)
    transmit = RecordingTransmit()
    flusher = SyncFlusher(queue, transmit, signals, interval_seconds=3600)
    flusher.start()
    await queue.enqueue(point(t=0))

    await flusher.stop()

    assert len(transmit.batches) == 1
    assert flusher.running is False

    await queue.enqueue(point(1, 1, t=10_000))
    signals.set_visible(False)
    await _settle()
    assert len(transmit.batches) == 1


@pytest.mark.asyncio
async def test_stop_delivers_points_queued_during_periodic_flush(
    memory_store: MemoryKeyValueStore,
    signals: PlatformSignals,
) -> None:
    queue = await _queue_with(memory_store, 1)
    first = queue.snapshot()
    transmit = RecordingTransmit()
    transmit.gate = asyncio.Event()
    flusher = SyncFlusher(queue, transmit, signals, interval_seconds=0.01)
    flusher.start()

    await asyncio.sleep(0.03)
    assert flusher.flush_in_progress is True
    late = point(1, 1, t=99_000)
    await queue.enqueue(late)

    stopping = asyncio.create_task(flusher.stop())
    await _settle()
    transmit.gate.set()
    await stopping

    assert transmit.batches == [first, [late]]
    assert len(queue) == 0


@pytest.mark.asyncio
async def test_requested_flush_during_inflight_sends_late_points(
    memory_store: MemoryKeyValueStore,
    signals: PlatformSignals,
) -> None:
    queue = await _queue_with(memory_store, 2)
    first = queue.snapshot()
    transmit = RecordingTransmit()
    transmit.gate = asyncio.Event()
    flusher = SyncFlusher(queue, transmit, signals, threshold=3, interval_seconds=3600)
    flusher.start()

    running = asyncio.create_task(flusher.flush("manual"))
    await _settle()
    late = point(1, 1, t=99_000)
    await queue.enqueue(late)
    flusher.notify_enqueued(3)
    await _settle()
    transmit.gate.set()
    await running
    await flusher.stop(final_flush=False)

    assert transmit.batches == [first, [late]]
    assert len(queue) == 0

"""
Background delivery of queued route points to the remote trip record.

Four triggers funnel into the same single-flight ``flush``:

- threshold: an enqueue brought the queue to ``threshold`` points
- periodic: every ``interval_seconds`` while running
- visibility: every foreground/background transition
- connectivity: the device came back online

All but connectivity require the device to be online at trigger time. A
failed flush leaves the queue untouched and waits for the next trigger;
there is no backoff between attempts.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING

from core.constants import FLUSH_INTERVAL_SECONDS, FLUSH_POINT_THRESHOLD

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from tracking.services.offline_queue import OfflineQueue
    from tracking.services.platform import PlatformSignals
    from trips.models import RoutePoint

    Transmit = Callable[[list[RoutePoint]], Awaitable[None]]

logger = logging.getLogger(__name__)


class SyncFlusher:
    """Drains an :class:`OfflineQueue` through ``transmit`` in bulk."""

    def __init__(
        self,
        queue: OfflineQueue,
        transmit: Transmit,
        signals: PlatformSignals,
        *,
        threshold: int = FLUSH_POINT_THRESHOLD,
        interval_seconds: float = FLUSH_INTERVAL_SECONDS,
    ) -> None:
        self._queue = queue
        self._transmit = transmit
        self._signals = signals
        self._threshold = threshold
        self._interval_seconds = interval_seconds

        self._running = False
        self._inflight: asyncio.Task[bool] | None = None
        self._periodic_task: asyncio.Task[None] | None = None
        self._requested: set[asyncio.Task[bool]] = set()

        self.flushed_points = 0
        self.last_error: str | None = None

    @property
    def running(self) -> bool:
        return self._running

    @property
    def flush_in_progress(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._signals.add_online_listener(self._on_online_change)
        self._signals.add_visibility_listener(self._on_visibility_change)
        self._periodic_task = asyncio.create_task(self._periodic_loop())
        logger.debug(
            "Sync flusher started (threshold=%d, interval=%.0fs)",
            self._threshold,
            self._interval_seconds,
        )

    async def stop(self, *, final_flush: bool = True) -> None:
        """Cancel timers and listeners, then attempt one last flush."""
        if not self._running:
            return
        self._running = False
        self._signals.remove_online_listener(self._on_online_change)
        self._signals.remove_visibility_listener(self._on_visibility_change)

        if self._periodic_task is not None:
            self._periodic_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._periodic_task
            self._periodic_task = None

        # Requested flushes and a periodic flush already in flight run to completion.
        pending = [*self._requested]
        if self._inflight is not None and not self._inflight.done():
            pending.append(self._inflight)
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        if final_flush:
            await self.flush("stop")

    def notify_enqueued(self, size: int) -> None:
        if size >= self._threshold and self._signals.online:
            self.request_flush("threshold")

    def request_flush(self, reason: str) -> asyncio.Task[bool]:
        """Schedule a flush without waiting for it."""
        task = asyncio.create_task(self.flush(reason))
        self._requested.add(task)
        task.add_done_callback(self._requested.discard)
        return task

    async def flush(self, reason: str = "manual") -> bool:
        """Deliver everything currently queued; joins a flush already running.

        Returns True when the queue snapshot was delivered (or was empty).
        Points queued while a joined flush was running are sent by a follow-up
        flush before returning.
        """
        running = self._inflight
        if running is not None and not running.done():
            delivered = await asyncio.shield(running)
            if not delivered or len(self._queue) == 0:
                return delivered
        if self._inflight is None or self._inflight.done():
            self._inflight = asyncio.create_task(self._flush_once(reason))
        # Shielded so that cancelling a waiter never aborts the delivery itself.
        return await asyncio.shield(self._inflight)

    async def _flush_once(self, reason: str) -> bool:
        points = self._queue.snapshot()
        if not points:
            return True

        try:
            await self._transmit(points)
        except Exception as exc:
            self.last_error = str(exc) or type(exc).__name__
            logger.warning(
                "Flush of %d points failed (%s, trigger=%s); will retry later",
                len(points),
                self.last_error,
                reason,
            )
            return False

        await self._queue.acknowledge(len(points))
        self.flushed_points += len(points)
        self.last_error = None
        logger.info(
            "Flushed %d points (trigger=%s, %d still queued)",
            len(points),
            reason,
            len(self._queue),
        )
        return True

    async def _periodic_loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval_seconds)
            if self._signals.online:
                await self.flush("periodic")

    def _on_online_change(self, online: bool) -> None:
        if online and self._running:
            self.request_flush("online")

    def _on_visibility_change(self, visible: bool) -> None:
        if self._running and self._signals.online:
            self.request_flush("visible" if visible else "hidden")

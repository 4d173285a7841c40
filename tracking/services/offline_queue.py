"""Durable FIFO of route points awaiting transmission.

The queue lives under a single fixed key and is independent of any trip.
Every mutation rewrites the whole queue to the local store; storage failures
are logged and swallowed, leaving the in-memory contents authoritative for
the rest of the process lifetime.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import TYPE_CHECKING

from core.constants import OFFLINE_QUEUE_KEY, QUEUE_SOFT_WARNING_SIZE
from trips.models import RoutePoint

if TYPE_CHECKING:
    from collections.abc import Iterable

    from tracking.services.local_store import KeyValueStore

logger = logging.getLogger(__name__)


class OfflineQueue:
    """Ordered buffer of :class:`RoutePoint` persisted under one key."""

    def __init__(
        self,
        store: KeyValueStore,
        *,
        key: str = OFFLINE_QUEUE_KEY,
        soft_warning_size: int = QUEUE_SOFT_WARNING_SIZE,
    ) -> None:
        self._store = store
        self._key = key
        self._soft_warning_size = soft_warning_size
        self._points: list[RoutePoint] = []
        self._write_lock = asyncio.Lock()
        self._warned = False

    def __len__(self) -> int:
        return len(self._points)

    @property
    def size(self) -> int:
        return len(self._points)

    async def load(self) -> int:
        """Restore persisted contents ahead of anything queued in memory."""
        try:
            raw = await self._store.get(self._key)
        except Exception:
            logger.warning("Offline queue load failed; starting empty", exc_info=True)
            return len(self._points)

        if not raw:
            return len(self._points)

        try:
            items = json.loads(raw)
            restored = [RoutePoint.model_validate(item) for item in items]
        except (ValueError, TypeError):
            logger.warning("Invalid offline queue payload under %s; discarding", self._key)
            await self._delete()
            return len(self._points)

        self._points = restored + self._points
        if restored:
            logger.info("Restored %d queued points from local storage", len(restored))
        return len(self._points)

    async def enqueue(self, point: RoutePoint) -> int:
        self._points.append(point)
        size = len(self._points)
        self._check_soft_limit(size)
        await self._persist()
        return size

    async def drain(self) -> list[RoutePoint]:
        """Return every queued point and empty the queue."""
        drained, self._points = self._points, []
        await self._persist()
        return drained

    async def restore(self, points: Iterable[RoutePoint]) -> None:
        """Put previously drained points back at the head of the queue."""
        restored = list(points)
        if not restored:
            return
        self._points = restored + self._points
        await self._persist()

    def snapshot(self) -> list[RoutePoint]:
        return list(self._points)

    async def acknowledge(self, count: int) -> None:
        """Remove exactly the first ``count`` points after they were delivered."""
        if count <= 0:
            return
        del self._points[:count]
        if len(self._points) < self._soft_warning_size:
            self._warned = False
        await self._persist()

    def _check_soft_limit(self, size: int) -> None:
        if size >= self._soft_warning_size and not self._warned:
            self._warned = True
            logger.warning(
                "Offline queue holds %d points; the trip API may be unreachable",
                size,
            )

    async def _persist(self) -> None:
        # Writes are serialised and always carry the latest contents, so a
        # slow earlier write can never overwrite a newer one.
        async with self._write_lock:
            payload = json.dumps([point.model_dump() for point in self._points])
            try:
                await self._store.set(self._key, payload)
            except Exception:
                logger.warning(
                    "Offline queue persist failed; keeping %d points in memory",
                    len(self._points),
                    exc_info=True,
                )

    async def _delete(self) -> None:
        try:
            await self._store.delete(self._key)
        except Exception:
            logger.debug("Offline queue key delete failed", exc_info=True)

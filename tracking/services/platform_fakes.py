"""Deterministic in-memory platform implementations.

Used by the test-suite and by local simulations: location events are injected
explicitly (or replayed on a schedule) instead of coming from a device.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections import deque
from typing import TYPE_CHECKING

from core.exceptions import LocationUnavailableError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from tracking.services.platform import LocationCallback, WatcherOptions
    from trips.models import LocationSample

logger = logging.getLogger(__name__)

_watcher_ids = itertools.count(1)


class FakeLocationWatcher:
    """Location watcher whose events are pushed by the caller."""

    def __init__(self) -> None:
        self.callback: LocationCallback | None = None
        self.options: WatcherOptions | None = None
        self.watcher_id: str | None = None
        self.start_calls = 0
        self.stop_calls = 0

    @property
    def active(self) -> bool:
        return self.callback is not None

    async def start(self, callback: LocationCallback, options: WatcherOptions) -> str:
        self.start_calls += 1
        if self.watcher_id is not None:
            return self.watcher_id
        self.callback = callback
        self.options = options
        self.watcher_id = f"fake-watcher-{next(_watcher_ids)}"
        return self.watcher_id

    async def stop(self) -> None:
        self.stop_calls += 1
        self.callback = None
        self.watcher_id = None

    async def emit(self, sample: LocationSample) -> bool:
        """Deliver one sample; returns False when the watcher is stopped."""
        if self.callback is None:
            return False
        await self.callback(sample)
        return True

    async def replay(
        self,
        samples: Iterable[LocationSample],
        interval_seconds: float = 0.0,
    ) -> int:
        delivered = 0
        for sample in samples:
            if not await self.emit(sample):
                break
            delivered += 1
            if interval_seconds:
                await asyncio.sleep(interval_seconds)
        return delivered


class FakePositionSource:
    """Returns queued fixes (or raises queued errors) in order."""

    def __init__(
        self,
        fixes: Iterable[LocationSample | LocationUnavailableError] = (),
    ) -> None:
        self._fixes: deque[LocationSample | LocationUnavailableError] = deque(fixes)
        self.calls = 0

    def push(self, fix: LocationSample | LocationUnavailableError) -> None:
        self._fixes.append(fix)

    async def get_current_position(self) -> LocationSample:
        self.calls += 1
        if not self._fixes:
            msg = "Location information is unavailable."
            raise LocationUnavailableError(msg)
        fix = self._fixes.popleft()
        if isinstance(fix, LocationUnavailableError):
            raise fix
        return fix


class FakePermissionBackend:
    """Permission backend with a scripted status and request outcome."""

    def __init__(
        self,
        status: str = "granted",
        *,
        request_result: str | None = None,
    ) -> None:
        self.status = status
        self.request_result = request_result
        self.requests: list[list[str]] = []

    async def get_status(self) -> str:
        return self.status

    async def request(self, permissions: list[str]) -> str:
        self.requests.append(list(permissions))
        if self.request_result is not None:
            self.status = self.request_result
        return self.status

"""Local durable key-value storage for tracking state.

Only two keys ever live here: the offline queue and the last known position.
Both are JSON documents written whole on every change.
"""

from __future__ import annotations

import json
import logging
from typing import Protocol

from core.constants import LAST_POSITION_KEY
from core.redis import get_shared_redis
from trips.models import LocationSample

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    """Minimal async string key-value store."""

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str) -> None: ...

    async def delete(self, key: str) -> None: ...


class RedisKeyValueStore:
    """Key-value store backed by the shared Redis client."""

    def __init__(self, namespace: str = "tracking:local:") -> None:
        self._namespace = namespace

    def _key(self, key: str) -> str:
        return f"{self._namespace}{key}"

    async def get(self, key: str) -> str | None:
        client = await get_shared_redis()
        return await client.get(self._key(key))

    async def set(self, key: str, value: str) -> None:
        client = await get_shared_redis()
        await client.set(self._key(key), value)

    async def delete(self, key: str) -> None:
        client = await get_shared_redis()
        await client.delete(self._key(key))


class MemoryKeyValueStore:
    """Process-local store, for tests and runs without persistence."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> str | None:
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        self.data[key] = value

    async def delete(self, key: str) -> None:
        self.data.pop(key, None)


class LastKnownPositionStore:
    """Remembers the most recent fix for use when a fresh one is unavailable."""

    def __init__(self, store: KeyValueStore, key: str = LAST_POSITION_KEY) -> None:
        self._store = store
        self._key = key

    async def save(self, sample: LocationSample) -> None:
        try:
            await self._store.set(self._key, sample.model_dump_json(exclude_none=True))
        except Exception:
            logger.warning("Failed to persist last known position", exc_info=True)

    async def load(self) -> LocationSample | None:
        try:
            raw = await self._store.get(self._key)
        except Exception:
            logger.warning("Failed to read last known position", exc_info=True)
            return None
        if not raw:
            return None
        try:
            return LocationSample.model_validate(json.loads(raw))
        except ValueError:
            logger.warning("Discarding malformed last known position")
            return None


__all__ = [
    "KeyValueStore",
    "LastKnownPositionStore",
    "MemoryKeyValueStore",
    "RedisKeyValueStore",
]

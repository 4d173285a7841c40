from unittest.mock import AsyncMock

import pytest

from tracking.services import local_store
from tracking.services.local_store import RedisKeyValueStore


@pytest.mark.asyncio
async def test_redis_store_namespaces_keys(monkeypatch: pytest.MonkeyPatch) -> None:
    client = AsyncMock()
    client.get.return_value = "[]"
    monkeypatch.setattr(local_store, "get_shared_redis", AsyncMock(return_value=client))
    store = RedisKeyValueStore(namespace="test:")

    await store.set("trip_bg_queue_v1", "[]")
    assert await store.get("trip_bg_queue_v1") == "[]"
    await store.delete("trip_bg_queue_v1")

    client.set.assert_awaited_once_with("test:trip_bg_queue_v1", "[]")
    client.get.assert_awaited_once_with("test:trip_bg_queue_v1")
    client.delete.assert_awaited_once_with("test:trip_bg_queue_v1")


def test_redis_url_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    from core.redis import DEFAULT_REDIS_URL, get_redis_url

    monkeypatch.delenv("REDIS_URL", raising=False)
    assert get_redis_url() == DEFAULT_REDIS_URL

    monkeypatch.setenv("REDIS_URL", "redis://cache:6380/2")
    assert get_redis_url() == "redis://cache:6380/2"

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]

if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest
from network_blocker import install_network_blocker

from tracking.services.local_store import MemoryKeyValueStore
from tracking.services.platform import PlatformSignals
from tracking.services.platform_fakes import (
    FakeLocationWatcher,
    FakePermissionBackend,
    FakePositionSource,
)


@pytest.fixture(autouse=True)
def _default_test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TRIP_API_BASE_URL", "http://trip-api.test/api")
    monkeypatch.delenv("TRIP_API_TOKEN", raising=False)
    monkeypatch.setenv("TRACKING_PLATFORM", "web")
    install_network_blocker(monkeypatch)


@pytest.fixture
def memory_store() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def signals() -> PlatformSignals:
    return PlatformSignals()


@pytest.fixture
def watcher() -> FakeLocationWatcher:
    return FakeLocationWatcher()


@pytest.fixture
def position_source() -> FakePositionSource:
    return FakePositionSource()


@pytest.fixture
def permission_backend() -> FakePermissionBackend:
    return FakePermissionBackend()

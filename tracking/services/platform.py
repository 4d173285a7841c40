"""
Platform capability interfaces consumed by the tracking pipeline.

Each capability is a small protocol so that a platform can plug in its own
implementation (native background geolocation, a GPX replay, or the
deterministic fakes used in tests):

- ``LocationWatcher``: continuous observation with a minimum distance filter
- ``PositionSource``: a one-shot location fix
- ``PermissionBackend``: permission status query and (re)request
- ``PlatformSignals``: connectivity and visibility transitions
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from trips.models import LocationSample

logger = logging.getLogger(__name__)

LocationCallback = Callable[["LocationSample"], Awaitable[None]]
SignalListener = Callable[[bool], None]


@dataclass(frozen=True)
class WatcherOptions:
    """Options for starting continuous location observation."""

    background_title: str = "Trip tracking"
    background_message: str = "Tracking active trip…"
    request_permissions: bool = True
    stale: bool = False
    distance_filter: float = 25.0


class LocationWatcher(Protocol):
    """Continuous location observation, including while backgrounded.

    Implementations await ``callback`` for each location in delivery order.
    """

    async def start(self, callback: LocationCallback, options: WatcherOptions) -> str: ...

    async def stop(self) -> None: ...


class PositionSource(Protocol):
    """One-shot fix.

    Raises :class:`core.exceptions.LocationUnavailableError` when no fix can
    be obtained.
    """

    async def get_current_position(self) -> LocationSample: ...


class PermissionBackend(Protocol):
    """Platform permission status query and request."""

    async def get_status(self) -> str: ...

    async def request(self, permissions: list[str]) -> str: ...


class PlatformSignals:
    """Connectivity and visibility state with change listeners.

    The platform glue calls :meth:`set_online` and :meth:`set_visible`;
    listeners receive the new value and only fire on actual transitions.
    """

    def __init__(self, *, online: bool = True, visible: bool = True) -> None:
        self.online = online
        self.visible = visible
        self._online_listeners: list[SignalListener] = []
        self._visibility_listeners: list[SignalListener] = []

    def add_online_listener(self, listener: SignalListener) -> None:
        self._online_listeners.append(listener)

    def remove_online_listener(self, listener: SignalListener) -> None:
        if listener in self._online_listeners:
            self._online_listeners.remove(listener)

    def add_visibility_listener(self, listener: SignalListener) -> None:
        self._visibility_listeners.append(listener)

    def remove_visibility_listener(self, listener: SignalListener) -> None:
        if listener in self._visibility_listeners:
            self._visibility_listeners.remove(listener)

    def set_online(self, online: bool) -> None:
        if online == self.online:
            return
        self.online = online
        logger.info("Connectivity changed: %s", "online" if online else "offline")
        self._notify(self._online_listeners, online)

    def set_visible(self, visible: bool) -> None:
        if visible == self.visible:
            return
        self.visible = visible
        logger.debug("Visibility changed: %s", "visible" if visible else "hidden")
        self._notify(self._visibility_listeners, visible)

    @staticmethod
    def _notify(listeners: list[SignalListener], value: bool) -> None:
        for listener in list(listeners):
            try:
                listener(value)
            except Exception:
                logger.exception("Platform signal listener failed")


__all__ = [
    "LocationCallback",
    "LocationWatcher",
    "PermissionBackend",
    "PlatformSignals",
    "PositionSource",
    "WatcherOptions",
]

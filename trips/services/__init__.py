"""Trip services module."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from trips.services.trip_api_client import TripApiClient

__all__ = ("TripApiClient",)


def __getattr__(name: str):
    if name == "TripApiClient":
        from trips.services.trip_api_client import TripApiClient

        return TripApiClient
    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)

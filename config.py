"""Centralized configuration for environment variables and external APIs.

This module is the single source of truth for configuration used across the
application. Import constants from here rather than calling os.getenv directly
in multiple places.
"""

from __future__ import annotations

import os
from typing import Final

from dotenv import load_dotenv

# Load environment variables from .env if present
load_dotenv()

SUPPORTED_PLATFORMS: Final[frozenset[str]] = frozenset({"ios", "android", "web"})


# --- Remote trip API ---
DEFAULT_TRIP_API_BASE_URL: Final[str] = "http://localhost:3000/api"
TRIP_API_BASE_URL: Final[str] = (
    os.getenv("TRIP_API_BASE_URL", "").strip() or DEFAULT_TRIP_API_BASE_URL
).rstrip("/")
TRIP_API_TOKEN: Final[str | None] = os.getenv("TRIP_API_TOKEN") or None


# --- Device / platform ---
TRACKING_PLATFORM: Final[str] = os.getenv("TRACKING_PLATFORM", "web").strip().lower()
BACKGROUND_DISTANCE_FILTER_M: Final[float] = float(
    os.getenv("BACKGROUND_DISTANCE_FILTER_M", "15"),
)


def get_trip_api_base_url() -> str:
    """Return the trip API base URL, honouring runtime environment overrides."""
    override = os.getenv("TRIP_API_BASE_URL", "").strip()
    return (override or TRIP_API_BASE_URL).rstrip("/")


def get_trip_api_token() -> str | None:
    """Return the bearer token attached to trip API requests, if configured."""
    return os.getenv("TRIP_API_TOKEN") or TRIP_API_TOKEN


def get_tracking_platform() -> str:
    """Return the normalised platform family the tracker runs on."""
    platform = os.getenv("TRACKING_PLATFORM", TRACKING_PLATFORM).strip().lower()
    if platform not in SUPPORTED_PLATFORMS:
        msg = (
            f"Unsupported TRACKING_PLATFORM '{platform}'. "
            f"Use one of: {', '.join(sorted(SUPPORTED_PLATFORMS))}."
        )
        raise RuntimeError(msg)
    return platform


__all__ = [
    "BACKGROUND_DISTANCE_FILTER_M",
    "DEFAULT_TRIP_API_BASE_URL",
    "SUPPORTED_PLATFORMS",
    "TRACKING_PLATFORM",
    "TRIP_API_BASE_URL",
    "TRIP_API_TOKEN",
    "get_tracking_platform",
    "get_trip_api_base_url",
    "get_trip_api_token",
]

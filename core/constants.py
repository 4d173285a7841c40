"""Global constants for the core package.

This module contains shared constants used across the tracking pipeline.
"""

from typing import Final

# HTTP Client Constants
HTTP_CONNECTION_LIMIT: Final[int] = 10
HTTP_TIMEOUT_CONNECT: Final[float] = 10.0
HTTP_TIMEOUT_SOCK_READ: Final[float] = 30.0
HTTP_TIMEOUT_TOTAL: Final[float] = 60.0

# Geodesy
EARTH_RADIUS_KM: Final[float] = 6371.0

# Per-sample admission filter
JITTER_WINDOW_MS: Final[int] = 3000
JITTER_DISTANCE_KM: Final[float] = 0.003
POOR_ACCURACY_M: Final[float] = 50.0
POOR_FIX_OVERDUE_MS: Final[int] = 30000

# Aggregate-time distance filter
MIN_SEGMENT_DISTANCE_KM: Final[float] = 0.005
MIN_SEGMENT_SECONDS: Final[float] = 5.0
MAX_GROUND_SPEED_KMH: Final[float] = 200.0

# Offline queue / sync flusher
OFFLINE_QUEUE_KEY: Final[str] = "trip_bg_queue_v1"
LAST_POSITION_KEY: Final[str] = "trip_tracker_last_position"
FLUSH_POINT_THRESHOLD: Final[int] = 20
FLUSH_INTERVAL_SECONDS: Final[float] = 60.0
QUEUE_SOFT_WARNING_SIZE: Final[int] = 500

# Trip session
ROUTE_PUSH_EVERY_POINTS: Final[int] = 10

# Permission escalation
ESCALATION_DELAY_SECONDS: Final[float] = 30.0

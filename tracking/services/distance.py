"""Distance, duration and average speed for the active trip.

Everything here is pure. The controller recomputes from the full route on
every admitted sample; appending a point never changes which earlier points
survive ``filter_for_distance``, so the total can only grow.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.constants import MAX_GROUND_SPEED_KMH, MIN_SEGMENT_SECONDS
from tracking.services.sample_filter import filter_for_distance, point_distance_km
from trips.models import TripMetrics

if TYPE_CHECKING:
    from collections.abc import Sequence

    from trips.models import RoutePoint


def segment_distance_km(a: RoutePoint, b: RoutePoint) -> float:
    """
    Distance contributed by the segment ``a -> b``.

    Returns 0 for segments shorter than five seconds (temporal noise) and
    for segments whose implied speed is not plausible for ground travel.
    """
    elapsed_s = (b.timestamp - a.timestamp) / 1000.0
    if elapsed_s < MIN_SEGMENT_SECONDS:
        return 0.0

    distance = point_distance_km(a, b)
    implied_speed_kmh = distance / elapsed_s * 3600
    if implied_speed_kmh > MAX_GROUND_SPEED_KMH:
        return 0.0
    return distance


def accumulate(route: Sequence[RoutePoint]) -> float:
    """Total filtered route distance in kilometres."""
    filtered = filter_for_distance(route)
    total = 0.0
    for a, b in zip(filtered, filtered[1:]):
        total += segment_distance_km(a, b)
    return total


def trip_duration_seconds(start_ms: int, now_ms: int) -> int:
    """Whole seconds elapsed since the trip started, never negative."""
    return max(0, int((now_ms - start_ms) // 1000))


def average_speed_kmh(distance_km: float, duration_s: int) -> float:
    if duration_s <= 0:
        return 0.0
    return distance_km / duration_s * 3600


def compute_trip_metrics(
    route: Sequence[RoutePoint],
    start_ms: int,
    now_ms: int,
) -> TripMetrics:
    distance = accumulate(route)
    duration = trip_duration_seconds(start_ms, now_ms)
    return TripMetrics(
        distance=distance,
        duration=duration,
        averageSpeed=average_speed_kmh(distance, duration),
    )

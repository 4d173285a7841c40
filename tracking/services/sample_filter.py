"""
GPS sample filtering.

Two independent passes guard the trip trace against GPS noise:

1. ``admit`` decides, sample by sample, whether a fix joins the persisted
   route. It only rejects jitter at rest, poor fixes that are not yet overdue,
   and fixes delivered out of order.
2. ``filter_for_distance`` runs over the whole route whenever the distance is
   recomputed. It is stricter (hard accuracy cut-off and a 5 m minimum step),
   so the list used for distance may be shorter than the persisted route.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from core.constants import (
    JITTER_DISTANCE_KM,
    JITTER_WINDOW_MS,
    MIN_SEGMENT_DISTANCE_KM,
    POOR_ACCURACY_M,
    POOR_FIX_OVERDUE_MS,
)
from core.spatial import GeometryService

if TYPE_CHECKING:
    from collections.abc import Iterable

    from trips.models import LocationSample, RoutePoint

logger = logging.getLogger(__name__)


def point_distance_km(
    a: RoutePoint | LocationSample,
    b: RoutePoint | LocationSample,
) -> float:
    """Great-circle distance between two points in kilometres."""
    return GeometryService.haversine_distance(
        a.longitude,
        a.latitude,
        b.longitude,
        b.latitude,
        unit="km",
    )


def admit(
    prev: RoutePoint | None,
    candidate: LocationSample | RoutePoint,
) -> bool:
    """Return whether ``candidate`` should be appended after ``prev``."""
    if prev is None:
        return True

    elapsed_ms = candidate.timestamp - prev.timestamp
    if elapsed_ms < 0:
        logger.debug(
            "Rejecting out-of-order fix (%d ms before last point)",
            -elapsed_ms,
        )
        return False

    if (
        elapsed_ms < JITTER_WINDOW_MS
        and point_distance_km(prev, candidate) < JITTER_DISTANCE_KM
    ):
        return False

    if candidate.accuracy > POOR_ACCURACY_M and elapsed_ms < POOR_FIX_OVERDUE_MS:
        return False

    return True


def filter_for_distance(route: Iterable[RoutePoint]) -> list[RoutePoint]:
    """Return the subset of ``route`` used for distance accumulation."""
    accepted: list[RoutePoint] = []
    for point in route:
        if point.accuracy > POOR_ACCURACY_M:
            continue
        if accepted and point_distance_km(accepted[-1], point) < MIN_SEGMENT_DISTANCE_KM:
            continue
        accepted.append(point)
    return accepted

"""
Spatial and geometry utilities.

Great-circle distance calculations for GPS samples.
"""

from __future__ import annotations

import logging
import math

from core.constants import EARTH_RADIUS_KM

logger = logging.getLogger(__name__)


class GeometryService:
    """Authoritative geometry operations for the application."""

    EARTH_RADIUS_KM = EARTH_RADIUS_KM

    @staticmethod
    def haversine_distance(
        lon1: float,
        lat1: float,
        lon2: float,
        lat2: float,
        unit: str = "km",
    ) -> float:
        """Calculate the great-circle distance using the Haversine formula."""
        phi1 = math.radians(lat1)
        phi2 = math.radians(lat2)
        dphi = math.radians(lat2 - lat1)
        dlmb = math.radians(lon2 - lon1)
        a = (
            math.sin(dphi / 2) ** 2
            + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
        )
        # Rounding can push a marginally above 1 for antipodal points.
        a = min(1.0, a)
        distance_km = (
            2 * GeometryService.EARTH_RADIUS_KM * math.atan2(math.sqrt(a), math.sqrt(1 - a))
        )
        if unit == "km":
            return distance_km
        if unit == "meters":
            return distance_km * 1000.0
        if unit == "miles":
            return distance_km / 1.609344
        msg = "Invalid unit. Use 'meters', 'miles', or 'km'."
        raise ValueError(msg)

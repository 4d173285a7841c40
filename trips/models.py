"""Pydantic models for trips, GPS samples and trip operations."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from date_utils import to_epoch_ms


class TripStatus(str, Enum):
    """Lifecycle status of a trip record."""

    ACTIVE = "active"
    COMPLETED = "completed"


class LocationSample(BaseModel):
    """A single fix delivered by the positioning capability."""

    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    accuracy: float = Field(default=0.0, ge=0)
    timestamp: int
    speed: float | None = None
    heading: float | None = None

    model_config = ConfigDict(frozen=True, extra="ignore")

    @field_validator("accuracy", mode="before")
    @classmethod
    def default_missing_accuracy(cls, v: Any) -> Any:
        # Some platforms report no accuracy at all; treat that as a perfect fix.
        return 0.0 if v is None else v


class RoutePoint(BaseModel):
    """An admitted location point, as persisted and transmitted."""

    latitude: float
    longitude: float
    timestamp: int
    accuracy: float = 0.0

    model_config = ConfigDict(frozen=True, extra="ignore")

    @classmethod
    def from_sample(cls, sample: LocationSample) -> RoutePoint:
        return cls(
            latitude=sample.latitude,
            longitude=sample.longitude,
            timestamp=sample.timestamp,
            accuracy=sample.accuracy,
        )


class Trip(BaseModel):
    """Trip record as owned by the remote trip API."""

    id: str = Field(alias="_id")
    userId: str | None = None
    purpose: str
    startTime: str | None = None
    endTime: str | None = None
    startOdometer: float = Field(default=0.0, ge=0)
    endOdometer: float | None = None
    startLocation: str | None = None
    endLocation: str | None = None
    distance: float = Field(default=0.0, ge=0)
    duration: int = Field(default=0, ge=0)
    route: list[RoutePoint] = Field(default_factory=list)
    status: TripStatus = TripStatus.ACTIVE
    averageSpeed: float = Field(default=0.0, ge=0)
    createdAt: str | None = None
    updatedAt: str | None = None

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("duration", mode="before")
    @classmethod
    def coerce_duration(cls, v: Any) -> Any:
        if isinstance(v, float):
            return int(v)
        return v

    @property
    def is_active(self) -> bool:
        return self.status == TripStatus.ACTIVE

    def start_epoch_ms(self) -> int | None:
        """Start of the trip in epoch ms, falling back to the creation time."""
        started = to_epoch_ms(self.startTime) or to_epoch_ms(self.createdAt)
        if started is not None:
            return started
        if self.route:
            return self.route[0].timestamp
        return None


class TripPage(BaseModel):
    """One page of a paginated trip listing."""

    data: list[Trip] = Field(default_factory=list)
    count: int = 0
    total: int = 0
    page: int = 1
    pages: int = 0

    model_config = ConfigDict(extra="ignore")


class TripMetrics(BaseModel):
    """Client-side provisional metrics for the active trip."""

    distance: float = 0.0
    duration: int = 0
    averageSpeed: float = 0.0


class TripOperationResult(BaseModel):
    """Outcome of a foreground trip operation, rendered inline by callers."""

    success: bool
    error: str | None = None
    trip: Trip | None = None

    @classmethod
    def ok(cls, trip: Trip | None = None) -> TripOperationResult:
        return cls(success=True, trip=trip)

    @classmethod
    def failed(cls, error: str) -> TripOperationResult:
        return cls(success=False, error=error)

"""Homerange Domain Models - Pydantic models for positions and reports."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class LifecycleState(str, Enum):
    """Application lifecycle states."""

    ACTIVE = "active"
    BACKGROUND = "background"
    INACTIVE = "inactive"


class PermissionState(str, Enum):
    """Result of a location permission check or request."""

    UNDETERMINED = "undetermined"
    GRANTED = "granted"
    DENIED = "denied"


class PermissionKind(str, Enum):
    """Platform specific location permission variants."""

    LOCATION_WHEN_IN_USE = "location_when_in_use"  # iOS foreground only
    LOCATION_ALWAYS = "location_always"  # iOS background capable
    ACCESS_FINE_LOCATION = "access_fine_location"  # Android


class Coordinate(BaseModel):
    """A latitude/longitude pair in decimal degrees."""

    model_config = ConfigDict(frozen=True)

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class PositionFix(BaseModel):
    """One position reported by the location service."""

    model_config = ConfigDict(frozen=True)

    coordinate: Coordinate
    captured_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    accuracy_m: float | None = None

    @property
    def latitude(self) -> float:
        return self.coordinate.latitude

    @property
    def longitude(self) -> float:
        return self.coordinate.longitude

    @property
    def age_seconds(self) -> float:
        """Seconds elapsed since the fix was captured, never negative."""
        return max(0.0, (datetime.now(UTC) - self.captured_at).total_seconds())


class DistanceReport(BaseModel):
    """Distance from the reference point, ready for one delivery attempt."""

    model_config = ConfigDict(frozen=True)

    distance_meters: float = Field(..., ge=0)
    timestamp: datetime
    lifecycle_state: LifecycleState

    @property
    def timestamp_iso(self) -> str:
        return isoformat_utc(self.timestamp)


def isoformat_utc(value: datetime) -> str:
    """Format a datetime as ISO-8601 UTC with milliseconds, e.g. 2024-05-01T10:00:00.000Z."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")

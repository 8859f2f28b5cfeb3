# wakeme/Schemas/geo.py
"""
Geographic value types consumed by the monitoring core.

- Coordinate: a validated WGS84 point, immutable
- GeoSample: one position sample from the location source
- Destination: the trip geofence (center + wake radius)
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Coordinate(BaseModel):
    """WGS84 coordinate in decimal degrees."""
    model_config = ConfigDict(frozen=True)

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class GeoSample(BaseModel):
    """
    A single position sample.

    Produced by a location source at an irregular cadence and consumed
    exactly once by the trip monitor.
    """
    model_config = ConfigDict(frozen=True)

    coordinate: Coordinate
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("timestamp")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # Naive timestamps from devices are taken as UTC
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @classmethod
    def at(cls, latitude: float, longitude: float, timestamp: Optional[datetime] = None) -> "GeoSample":
        """Shortcut used by transports that receive flat lat/lng pairs."""
        coordinate = Coordinate(latitude=latitude, longitude=longitude)
        if timestamp is None:
            return cls(coordinate=coordinate)
        return cls(coordinate=coordinate, timestamp=timestamp)


class Destination(BaseModel):
    """
    Destination geofence for one trip.

    Immutable for the trip's duration; a new destination means a new trip.
    """
    model_config = ConfigDict(frozen=True)

    coordinate: Coordinate
    radius_meters: float = Field(..., gt=0)
    place_name: Optional[str] = None

# wakeme/Schemas/trip.py
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from datetime import datetime
from typing import List, Optional


# ============================================
# SHARED CONFIG
# ============================================
# JSON bodies use camelCase (radiusMeters, placeName, createdAt...)
_camel_config = ConfigDict(
    from_attributes=True,
    alias_generator=to_camel,
    populate_by_name=True,
)


# ============================================
# NESTED LOCATION SCHEMAS
# ============================================
class LatLng(BaseModel):
    """Plain coordinate pair as exchanged with clients."""
    model_config = _camel_config

    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class TripDestination(LatLng):
    """Destination coordinate plus the optional place name from search."""

    place_name: Optional[str] = Field(None, max_length=300)

    @field_validator("place_name")
    @classmethod
    def _strip_place_name(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        return value or None


# ============================================
# CREATE SCHEMA
# ============================================
class Trip_create(BaseModel):
    """
    Schema for creating new trips.

    Validation happens here, at the boundary: nothing is coerced.
    """
    model_config = _camel_config

    title: str = Field(..., min_length=1, max_length=200)

    start: Optional[LatLng] = None

    destination: TripDestination

    radius_meters: float = Field(
        ...,
        ge=50,
        description="Wake radius in meters (minimum 50)"
    )

    eta_offset_minutes: int = Field(
        0,
        ge=0,
        description="Stored label only; not evaluated"
    )

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("title must not be blank")
        return value


# ============================================
# UPDATE SCHEMA
# ============================================
class Trip_update(BaseModel):
    """
    Schema for partial trip updates.

    Lifecycle fields (startedAt, endedAt, createdAt, locationPoints) are not
    declared, so they are dropped silently when a client sends them.
    """
    model_config = _camel_config

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    start: Optional[LatLng] = None
    destination: Optional[TripDestination] = None
    radius_meters: Optional[float] = Field(None, ge=50)
    eta_offset_minutes: Optional[int] = Field(None, ge=0)

    # Omitting a field keeps it; sending null is an error. Only start can be cleared.
    @field_validator("title", "destination", "radius_meters", "eta_offset_minutes", mode="before")
    @classmethod
    def _reject_null(cls, value):
        if value is None:
            raise ValueError("may be omitted but not null")
        return value

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("title must not be blank")
        return value


# ============================================
# LOCATION POINT SCHEMAS
# ============================================
class LocationPoint_create(BaseModel):
    """
    Location point appended to a trip.

    Accepts ``lat``/``lng`` or ``latitude``/``longitude``; the sample time may
    be sent as ``ts`` or ``timestamp`` and defaults to the server time.
    """
    model_config = ConfigDict(populate_by_name=True)

    lat: float = Field(..., ge=-90, le=90, validation_alias=AliasChoices("lat", "latitude"))
    lng: float = Field(..., ge=-180, le=180, validation_alias=AliasChoices("lng", "longitude"))
    ts: Optional[datetime] = Field(None, validation_alias=AliasChoices("ts", "timestamp"))


class LocationPoint_get(BaseModel):
    model_config = _camel_config

    lat: float
    lng: float
    ts: datetime


# ============================================
# GET SCHEMA
# ============================================
class Trip_get(BaseModel):
    """
    Schema for trip responses.

    Used by every REST endpoint that returns a trip.
    """
    model_config = _camel_config

    id: str
    title: str
    start: Optional[LatLng] = None
    destination: TripDestination
    radius_meters: float
    eta_offset_minutes: int = 0
    created_at: datetime
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    location_points: List[LocationPoint_get] = Field(default_factory=list)


class Message_response(BaseModel):
    message: str

# wakeme/Schemas/monitor.py
"""
Schemas for live trip monitoring.

- AlarmPreferences: per-session alarm signal settings
- Sample_message / LocationError_message: client → server WebSocket payloads
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import AliasChoices, BaseModel, Field

from wakeme.Core.config import settings


class AlarmPreferences(BaseModel):
    """
    Alarm signal preferences.

    Defaults come from settings; clients may override them when opening a
    monitoring session.
    """

    volume: float = Field(default_factory=lambda: settings.ALARM_VOLUME, ge=0, le=1)
    loop: bool = True
    vibrate: bool = Field(default_factory=lambda: settings.ALARM_VIBRATE)
    notifications: bool = Field(default_factory=lambda: settings.ALARM_NOTIFICATIONS)
    vibration_pattern: List[int] = Field(default_factory=lambda: list(settings.ALARM_VIBRATION_PATTERN))


class Sample_message(BaseModel):
    """Position sample pushed by the client."""

    type: Literal["sample"] = "sample"
    lat: float = Field(..., ge=-90, le=90, validation_alias=AliasChoices("lat", "latitude"))
    lng: float = Field(..., ge=-180, le=180, validation_alias=AliasChoices("lng", "longitude"))
    timestamp: Optional[datetime] = Field(None, validation_alias=AliasChoices("timestamp", "ts"))
    age_ms: Optional[int] = Field(
        None,
        ge=0,
        validation_alias=AliasChoices("age_ms", "ageMs"),
        description="Age of a cached fix; omitted for fresh positions",
    )


class LocationError_message(BaseModel):
    """Location failure reported by the client's location provider."""

    type: Literal["error"] = "error"
    code: Literal["PERMISSION_DENIED", "POSITION_UNAVAILABLE", "TIMEOUT"]
    message: str = ""

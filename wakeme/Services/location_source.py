# wakeme/Services/location_source.py
"""
Location Source
===============
Continuous position stream consumed by the trip monitor.

Contract:
    handle = source.watch(on_sample, on_error, options)
    source.cancel(handle)

- on_sample(GeoSample) is called for every delivered position
- on_error(LocationError) is called for recoverable failures (permission
  denied, position unavailable, timeout); the subscription stays open
- watch() raises LocationCapabilityError when positioning is not available
  at all, so the caller can fail fast

Implementations:
- PushLocationSource: samples pushed in by a transport (monitor WebSocket);
  cached fixes older than max_sample_age_ms become TIMEOUT errors
- ReplayLocationSource: a recorded sequence played back synchronously
"""

import itertools
import threading
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, Field

from wakeme.Core.config import settings
from wakeme.Schemas.geo import GeoSample


SampleCallback = Callable[[GeoSample], None]
ErrorCallback = Callable[["LocationError"], None]


# ==========================================================
# ERRORS
# ==========================================================

class LocationErrorCode(str, Enum):
    PERMISSION_DENIED = "PERMISSION_DENIED"
    POSITION_UNAVAILABLE = "POSITION_UNAVAILABLE"
    TIMEOUT = "TIMEOUT"


class LocationError(Exception):
    """Recoverable location failure reported through on_error."""

    def __init__(self, code: LocationErrorCode, message: str = ""):
        self.code = LocationErrorCode(code)
        self.message = message or self.code.value.replace("_", " ").lower()
        super().__init__(f"{self.code.value}: {self.message}")


class LocationCapabilityError(Exception):
    """Positioning is not available on this host at all."""


# ==========================================================
# WATCH OPTIONS
# ==========================================================

class WatchOptions(BaseModel):
    """Options requested from the location provider."""

    high_accuracy: bool = Field(default_factory=lambda: settings.LOCATION_HIGH_ACCURACY)
    max_sample_age_ms: int = Field(default_factory=lambda: settings.LOCATION_MAX_AGE_MS, ge=0)
    timeout_ms: int = Field(default_factory=lambda: settings.LOCATION_TIMEOUT_MS, gt=0)


# ==========================================================
# BASE SOURCE
# ==========================================================

class LocationSource:
    """
    Subscription bookkeeping shared by the concrete sources.

    Args:
        available: False simulates a host without positioning capability
    """

    def __init__(self, available: bool = True):
        self.available = available
        self._subscriptions: Dict[int, Tuple[SampleCallback, ErrorCallback, WatchOptions]] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def watch(
        self,
        on_sample: SampleCallback,
        on_error: ErrorCallback,
        options: Optional[WatchOptions] = None
    ) -> int:
        if not self.available:
            raise LocationCapabilityError("Location services are not available on this device")

        handle = next(self._ids)
        with self._lock:
            self._subscriptions[handle] = (on_sample, on_error, options or WatchOptions())
        return handle

    def cancel(self, handle: int):
        """Cancel a subscription. Unknown or already-cancelled handles are ignored."""
        with self._lock:
            self._subscriptions.pop(handle, None)

    def is_active(self, handle: int) -> bool:
        with self._lock:
            return handle in self._subscriptions

    @property
    def subscription_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def _snapshot(self):
        # Callbacks run outside the lock so a subscriber may cancel from inside one
        with self._lock:
            return list(self._subscriptions.items())


class PushLocationSource(LocationSource):
    """
    Source fed by a transport that receives positions from a device.

    The device timestamp is recorded but never compared with the server
    clock, so a device whose clock drifts still has its samples evaluated.
    Freshness is judged only from the age the client reports for a cached
    fix: a sample whose ``age_ms`` exceeds the subscription's
    max_sample_age_ms is reported as a TIMEOUT error instead of delivered.
    """

    def push(self, sample: GeoSample, age_ms: Optional[int] = None) -> int:
        """
        Deliver a sample to every active subscription.

        Args:
            sample: Position sample as received
            age_ms: Age of the fix when the client sent it; None means fresh

        Returns:
            int: Number of subscriptions the sample was delivered to
        """
        delivered = 0

        for _, (on_sample, on_error, options) in self._snapshot():
            if age_ms is not None and options.max_sample_age_ms and age_ms > options.max_sample_age_ms:
                on_error(LocationError(
                    LocationErrorCode.TIMEOUT,
                    f"Discarded cached position ({age_ms / 1000:.0f} s old)"
                ))
                continue
            on_sample(sample)
            delivered += 1

        return delivered

    def push_error(self, error: LocationError):
        for _, (_, on_error, _) in self._snapshot():
            on_error(error)


class ReplayLocationSource(LocationSource):
    """
    Plays back a recorded sequence of samples and errors.

    play() delivers events in order to the active subscription and stops as
    soon as that subscription is cancelled.
    """

    def __init__(
        self,
        events: Optional[List[Union[GeoSample, LocationError]]] = None,
        available: bool = True
    ):
        super().__init__(available)
        self.events = list(events or [])

    def play(self, before_each: Optional[Callable[[int, Union[GeoSample, LocationError]], None]] = None) -> int:
        """
        Args:
            before_each: Optional hook called with (index, event) before each
                         delivery; tests use it to advance a fake clock

        Returns:
            int: Number of events delivered
        """
        delivered = 0
        for index, event in enumerate(self.events):
            subscriptions = self._snapshot()
            if not subscriptions:
                break
            if before_each is not None:
                before_each(index, event)
            for _, (on_sample, on_error, _) in subscriptions:
                if isinstance(event, LocationError):
                    on_error(event)
                else:
                    on_sample(event)
            delivered += 1
        return delivered

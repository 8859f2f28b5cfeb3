# wakeme/Services/geofence_evaluator.py
"""
Geofence Evaluator
==================
Classifies a position sample as INSIDE or OUTSIDE the destination geofence
and reports whether containment changed since the previous sample.

Decision matrix (previous state → new state):
- OUTSIDE: INSIDE iff distance <= radius
- INSIDE:  stays INSIDE while distance <= radius * exit_margin_ratio

The comparison is non-strict, so a sample exactly on the boundary counts as
arrival. With exit_margin_ratio = 1.0 (default) there is no hysteresis band
and a single sample flips containment in either direction.
"""

from enum import Enum
from typing import Optional, Tuple

from wakeme.Core.config import settings
from wakeme.Schemas.geo import Destination, GeoSample
from wakeme.Services.distance import distance


class ContainmentState(str, Enum):
    OUTSIDE = "outside"
    INSIDE = "inside"


class GeofenceEvaluator:
    """
    Stateless geofence classifier.

    The caller owns the previous containment state; the evaluator only keeps
    the last computed distance so monitors can show it.
    """

    def __init__(self, exit_margin_ratio: Optional[float] = None):
        if exit_margin_ratio is None:
            exit_margin_ratio = settings.GEOFENCE_EXIT_MARGIN_RATIO
        if exit_margin_ratio < 1.0:
            raise ValueError("exit_margin_ratio must be >= 1.0")

        self.exit_margin_ratio = exit_margin_ratio
        self.last_distance_m: Optional[float] = None

    def evaluate(
        self,
        sample: GeoSample,
        destination: Destination,
        previous_state: ContainmentState
    ) -> Tuple[ContainmentState, bool]:
        """
        Evaluate one sample against the destination geofence.

        Args:
            sample: Current position sample
            destination: Trip destination (center + radius)
            previous_state: Containment state after the previous sample

        Returns:
            tuple: (new_state, transitioned)
        """
        d = distance(sample.coordinate, destination.coordinate)
        self.last_distance_m = d

        threshold = destination.radius_meters
        if previous_state == ContainmentState.INSIDE:
            threshold = destination.radius_meters * self.exit_margin_ratio

        new_state = ContainmentState.INSIDE if d <= threshold else ContainmentState.OUTSIDE
        return new_state, new_state != previous_state


def evaluate(
    sample: GeoSample,
    destination: Destination,
    previous_state: ContainmentState
) -> Tuple[ContainmentState, bool]:
    """Evaluate without hysteresis (single-sample flip)."""
    return GeofenceEvaluator(exit_margin_ratio=1.0).evaluate(sample, destination, previous_state)

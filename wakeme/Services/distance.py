# wakeme/Services/distance.py
"""
Distance Calculator
===================
Great-circle distance between two coordinates (Haversine formula) plus the
display helpers used in user-visible monitor messages.

Functions:
- calculate_haversine_distance(): distance in meters from raw lat/lon pairs
- distance(): same, for Coordinate values
- format_distance(): "850 m" / "3.9 km"
- format_coordinates(): "40.712800, -74.006000"
"""

from math import radians, sin, cos, sqrt, atan2

from wakeme.Schemas.geo import Coordinate

# Mean Earth radius in meters
EARTH_RADIUS_M = 6371000


def calculate_haversine_distance(
    lat1: float,
    lon1: float,
    lat2: float,
    lon2: float
) -> float:
    """
    Calculate the great-circle distance between two points on Earth.

    Formula:
        a = sin²(Δlat/2) + cos(lat1) * cos(lat2) * sin²(Δlon/2)
        c = 2 * atan2(√a, √(1−a))
        d = R * c

    Args:
        lat1: Latitude of point 1 (decimal degrees)
        lon1: Longitude of point 1 (decimal degrees)
        lat2: Latitude of point 2 (decimal degrees)
        lon2: Longitude of point 2 (decimal degrees)

    Returns:
        float: Distance in meters (>= 0)

    Examples:
        >>> calculate_haversine_distance(10.0, -74.0, 10.001, -74.0)
        111.19...
        >>> calculate_haversine_distance(10.5, -74.8, 10.5, -74.8)
        0.0

    Notes:
        - Spherical Earth (R = 6371 km); ellipsoidal flattening is ignored
        - Symmetric in its two points
        - Malformed coordinates are the caller's responsibility
    """
    lat1_rad = radians(lat1)
    lat2_rad = radians(lat2)
    delta_lat = radians(lat2 - lat1)
    delta_lon = radians(lon2 - lon1)

    a = sin(delta_lat / 2) ** 2 + cos(lat1_rad) * cos(lat2_rad) * sin(delta_lon / 2) ** 2
    # Rounding can push a a hair above 1 for antipodal points
    a = min(1.0, a)
    c = 2 * atan2(sqrt(a), sqrt(1 - a))

    return EARTH_RADIUS_M * c


def distance(a: Coordinate, b: Coordinate) -> float:
    """Distance in meters between two coordinates."""
    return calculate_haversine_distance(a.latitude, a.longitude, b.latitude, b.longitude)


def format_distance(meters: float) -> str:
    if meters < 1000:
        return f"{meters:.0f} m"
    return f"{meters / 1000:.1f} km"


def format_coordinates(lat: float, lng: float) -> str:
    return f"{lat:.6f}, {lng:.6f}"

"""Tests for the Haversine distance helpers."""

import pytest

from wakeme.Schemas.geo import Coordinate
from wakeme.Services.distance import (
    EARTH_RADIUS_M,
    calculate_haversine_distance,
    distance,
    format_coordinates,
    format_distance,
)


class TestHaversineDistance:
    """Great-circle distance in meters."""

    def test_same_point_is_zero(self):
        assert calculate_haversine_distance(10.5, -74.8, 10.5, -74.8) == 0.0

    def test_symmetric(self):
        there = calculate_haversine_distance(40.7128, -74.0060, 34.0522, -118.2437)
        back = calculate_haversine_distance(34.0522, -118.2437, 40.7128, -74.0060)
        assert there == pytest.approx(back)

    def test_new_york_to_los_angeles(self):
        d = calculate_haversine_distance(40.7128, -74.0060, 34.0522, -118.2437)
        assert d == pytest.approx(3_935_000, rel=0.01)

    def test_one_thousandth_degree_of_latitude(self):
        d = calculate_haversine_distance(10.0, -74.0, 10.001, -74.0)
        assert d == pytest.approx(111.19, abs=0.01)

    def test_antipodal_points_do_not_overflow(self):
        d = calculate_haversine_distance(0.0, 0.0, 0.0, 180.0)
        assert d == pytest.approx(EARTH_RADIUS_M * 3.141592653589793)

    def test_coordinate_wrapper(self):
        a = Coordinate(latitude=40.7128, longitude=-74.0060)
        b = Coordinate(latitude=40.7306, longitude=-73.9352)
        assert distance(a, b) == calculate_haversine_distance(40.7128, -74.0060, 40.7306, -73.9352)


class TestFormatting:

    def test_meters_below_one_kilometer(self):
        assert format_distance(850.4) == "850 m"

    def test_kilometers(self):
        assert format_distance(3935.0) == "3.9 km"

    def test_coordinates(self):
        assert format_coordinates(40.7128, -74.006) == "40.712800, -74.006000"

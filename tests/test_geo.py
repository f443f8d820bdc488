import math

import pytest

from daytrace.geo import EARTH_RADIUS_M, distance, haversine_m, is_within_radius
from daytrace.models import Coordinate


def test_distance_zero_for_identical_points():
    a = Coordinate(40.0, -74.0)
    assert distance(a, a) == 0.0


@pytest.mark.parametrize(
    "a,b",
    [
        (Coordinate(40.0, -74.0), Coordinate(40.0001, -74.0001)),
        (Coordinate(31.2304, 121.4737), Coordinate(39.9042, 116.4074)),
        (Coordinate(-33.86, 151.21), Coordinate(51.5, -0.12)),
    ],
)
def test_distance_is_symmetric(a, b):
    assert distance(a, b) == pytest.approx(distance(b, a))


def test_one_degree_of_latitude():
    assert haversine_m(0.0, 0.0, 1.0, 0.0) == pytest.approx(EARTH_RADIUS_M * math.pi / 180.0)


def test_small_offset_is_within_same_place_radius():
    d = distance(Coordinate(40.0, -74.0), Coordinate(40.0001, -74.0001))
    assert 10.0 < d < 20.0


def test_antipodal_points():
    assert haversine_m(0.0, 0.0, 0.0, 180.0) == pytest.approx(math.pi * EARTH_RADIUS_M)


def test_radius_boundary_is_inclusive():
    a = Coordinate(40.0, -74.0)
    b = Coordinate(40.0009, -74.0)
    d = distance(a, b)
    assert is_within_radius(a, b, d)
    assert not is_within_radius(a, b, d - 0.01)

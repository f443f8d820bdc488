"""Geospatial utilities (no external dependencies)."""

from __future__ import annotations

import math

from daytrace.models import Coordinate


EARTH_RADIUS_M = 6_371_000.0  # mean Earth radius in meters


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute Haversine distance in meters between two lat/lon points.

    Args:
        lat1: Latitude 1 in degrees.
        lon1: Longitude 1 in degrees.
        lat2: Latitude 2 in degrees.
        lon2: Longitude 2 in degrees.

    Returns:
        Distance in meters.
    """

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2.0) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2.0) ** 2
    # rounding can push a a hair above 1.0 for antipodal points
    a = min(1.0, a)
    c = 2.0 * math.atan2(math.sqrt(a), math.sqrt(1.0 - a))
    return EARTH_RADIUS_M * c


def distance(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance in meters between two coordinates."""

    return haversine_m(a.latitude, a.longitude, b.latitude, b.longitude)


def is_within_radius(a: Coordinate, b: Coordinate, radius_m: float) -> bool:
    """Check whether two coordinates are within (or exactly at) ``radius_m`` of each other."""

    return distance(a, b) <= radius_m

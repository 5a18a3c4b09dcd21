"""
Great-Circle Distance
=====================

Distance between two coordinates on a spherical earth.
Uses the Haversine formula, which is accurate to well under 0.5% for the
short ranges a single device covers.

Usage:
    home = Coordinate(latitude=-33.8441, longitude=150.9371)
    meters = calculate_distance(home, fix.coordinate)
"""

from __future__ import annotations

import math

from ...domain.models import Coordinate

EARTH_RADIUS_M = 6_371_000.0


def calculate_distance(a: Coordinate, b: Coordinate) -> float:
    """
    Calculate the great-circle distance between two points.

    Args:
        a: First coordinate (degrees)
        b: Second coordinate (degrees)

    Returns:
        Distance in meters, never negative
    """
    lat1_rad = math.radians(a.latitude)
    lat2_rad = math.radians(b.latitude)
    dlat = math.radians(b.latitude - a.latitude)
    dlon = math.radians(b.longitude - a.longitude)

    h = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon / 2) ** 2
    )
    # Rounding can push h a hair outside [0, 1] for antipodal points
    h = min(1.0, max(0.0, h))
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))

    return EARTH_RADIUS_M * c

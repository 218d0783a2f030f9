"""
Purpose: Great-circle distance math for the assignment engine.
What it does:
- distance_meters(a, b): haversine distance between two (lat, lng) pairs
- validate_coordinate(coord): range check callers run before distance_meters

Rule: No provider/user rules here, coordinates in, meters out.
"""

from __future__ import annotations

import math
from typing import Optional, Tuple

from assignments.errors import InvalidCoordinateError

# internal coordinate type: (lat, lng)
LatLon = Tuple[float, float]

EARTH_RADIUS_M = 6_371_000


def distance_meters(a: LatLon, b: LatLon) -> float:
    """
    Haversine great-circle distance in meters.

    Both coordinates must already be validated; out-of-range input is not
    rejected here.
    """
    lat1, lon1 = a
    lat2, lon2 = b

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lon2 - lon1)

    h = (
        math.sin(delta_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2
    )
    return 2 * EARTH_RADIUS_M * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def is_valid_coordinate(coord: Optional[LatLon]) -> bool:
    if coord is None:
        return False
    try:
        lat, lng = float(coord[0]), float(coord[1])
    except (TypeError, ValueError, IndexError):
        return False
    if math.isnan(lat) or math.isnan(lng):
        return False
    return -90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0


def validate_coordinate(coord: Optional[LatLon]) -> LatLon:
    """
    Returns the coordinate as a float pair or raises InvalidCoordinateError.
    """
    if not is_valid_coordinate(coord):
        raise InvalidCoordinateError(coord)
    return float(coord[0]), float(coord[1])

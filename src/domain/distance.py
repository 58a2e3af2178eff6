"""
Great-circle distance helpers used by the trip search filters.

Coordinates are stored GeoJSON-style as ``[lng, lat]`` pairs.  Routing is
out of scope, so "near" means within a Haversine radius of the point.
"""

import math
from typing import Sequence

EARTH_RADIUS_KM = 6_371.0


def haversine_km(
    lat1: float, lng1: float, lat2: float, lng2: float
) -> float:
    """Return the great-circle distance in **km** between two points."""
    lat1_r, lat2_r = math.radians(lat1), math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)

    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1_r) * math.cos(lat2_r) * math.sin(dlng / 2) ** 2
    )
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


def within_radius(
    point: Sequence[float], centre: Sequence[float], radius_km: float
) -> bool:
    """True if ``point`` lies within ``radius_km`` of ``centre`` (both ``[lng, lat]``)."""
    return haversine_km(point[1], point[0], centre[1], centre[0]) <= radius_km


def parse_coords(raw: str) -> tuple[float, float]:
    """Parse a ``"lng,lat"`` query-string value."""
    parts = raw.split(",")
    if len(parts) != 2:
        raise ValueError(f"Expected 'lng,lat', got {raw!r}")
    lng, lat = (float(p) for p in parts)
    if not (-180 <= lng <= 180 and -90 <= lat <= 90):
        raise ValueError(f"Coordinates out of range: {raw!r}")
    return lng, lat

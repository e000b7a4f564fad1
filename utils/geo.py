"""
Great-circle distance helpers.
"""

import math
from typing import Tuple

EARTH_RADIUS_KM = 6371.0

# Kilometres per degree of latitude (and of longitude at the equator)
KM_PER_DEGREE = 111.0


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """
    Distance in kilometres between two points given in decimal degrees.

    NaN inputs propagate as NaN; callers validate coordinates.
    """
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)

    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2))
        * math.sin(d_lng / 2) ** 2
    )
    # Clamp float noise so sqrt(1 - a) stays real
    a = min(1.0, max(0.0, a)) if not math.isnan(a) else a
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_KM * c


def bounding_box(lat: float, lng: float, radius_km: float) -> Tuple[float, float, float, float]:
    """
    Degree box (south, north, west, east) that contains every point within radius_km.

    Used to pre-filter rows in the store before the exact haversine check.
    """
    d_lat = radius_km / KM_PER_DEGREE
    cos_lat = math.cos(math.radians(lat))
    # Near the poles any longitude may be in range
    d_lng = radius_km / (KM_PER_DEGREE * cos_lat) if cos_lat > 1e-6 else 180.0
    return lat - d_lat, lat + d_lat, lng - d_lng, lng + d_lng

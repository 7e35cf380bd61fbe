"""Great-circle distance for geofenced check-out.

Spherical earth (mean radius 6,371 km) and the haversine formula; accurate to
well under a meter at the few-hundred-meter scale the geofence works with.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from ..core.constants import EARTH_RADIUS_M


@dataclass(frozen=True)
class GeoPoint:
    latitude: float
    longitude: float


def haversine_distance(a: GeoPoint, b: GeoPoint) -> float:
    """Distance in meters between two points given in degrees."""
    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    dlat = lat2 - lat1
    dlon = math.radians(b.longitude - a.longitude)

    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    # Rounding can push h a hair outside [0, 1] for antipodal points.
    h = min(1.0, max(0.0, h))

    return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(h))


def is_within_radius(a: GeoPoint, b: GeoPoint, radius_m: float) -> bool:
    return haversine_distance(a, b) <= radius_m

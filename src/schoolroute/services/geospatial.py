"""Geospatial helper functions."""

from __future__ import annotations

import math

from ..models.domain import Point

EARTH_RADIUS_M = 6_371_000.0


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute distance in meters between two coordinates using the Haversine formula."""

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_M * c


def distance_meters(a: Point, b: Point) -> float:
    """Great-circle distance between two points in meters."""

    return haversine_m(a.lat, a.lng, b.lat, b.lng)


def estimate_duration_seconds(distance_m: float, speed_kmh: float) -> float:
    """Travel time for ``distance_m`` at a constant average speed."""

    return distance_m / (speed_kmh / 3.6)

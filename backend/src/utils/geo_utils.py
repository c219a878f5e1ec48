"""Geographic utility functions for distance calculations and nearby lookups."""

import math
from typing import Iterable, Protocol

# Earth's radius
EARTH_RADIUS_KM = 6371.0
EARTH_RADIUS_MILES = 3958.8
KM_PER_MILE = 1.609344


class Located(Protocol):
    slug: str
    latitude: float | None
    longitude: float | None


def _central_angle(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lat = math.radians(lat2 - lat1)
    delta_lon = math.radians(lon2 - lon1)

    # Haversine formula
    a = (
        math.sin(delta_lat / 2) ** 2
        + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(delta_lon / 2) ** 2
    )
    return 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate the great-circle distance between two points on Earth.

    Uses the haversine formula to calculate the shortest distance over
    the earth's surface between two points.

    Args:
        lat1: Latitude of first point in degrees
        lon1: Longitude of first point in degrees
        lat2: Latitude of second point in degrees
        lon2: Longitude of second point in degrees

    Returns:
        Distance in kilometers
    """
    return EARTH_RADIUS_KM * _central_angle(lat1, lon1, lat2, lon2)


def haversine_miles(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in statute miles."""
    return EARTH_RADIUS_MILES * _central_angle(lat1, lon1, lat2, lon2)


def km_to_miles(km: float) -> float:
    return km / KM_PER_MILE


def bounding_box(
    lat: float, lon: float, radius_km: float
) -> tuple[float, float, float, float]:
    """
    Calculate a bounding box around a point for quick filtering.

    This is an approximation that works well for typical radii.

    Args:
        lat: Center latitude in degrees
        lon: Center longitude in degrees
        radius_km: Radius in kilometers

    Returns:
        Tuple of (min_lat, max_lat, min_lon, max_lon) in degrees
    """
    # At the equator, 1 degree = 111 km
    km_per_degree_lat = 111.0
    km_per_degree_lon = 111.0 * math.cos(math.radians(lat))

    delta_lat = radius_km / km_per_degree_lat
    delta_lon = radius_km / km_per_degree_lon if km_per_degree_lon > 0 else 180.0

    return (
        lat - delta_lat,
        lat + delta_lat,
        lon - delta_lon,
        lon + delta_lon,
    )


def find_nearby(
    origin: Located,
    candidates: Iterable[Located],
    max_miles: float,
    limit: int,
) -> list[tuple[Located, float]]:
    """
    Find the candidates closest to ``origin`` within ``max_miles``.

    The origin itself (matched by slug) and candidates without coordinates
    are ignored. Results are sorted by ascending distance.

    Returns:
        List of (candidate, distance_miles) tuples, at most ``limit`` long
    """
    if origin.latitude is None or origin.longitude is None:
        return []

    min_lat, max_lat, min_lon, max_lon = bounding_box(
        origin.latitude, origin.longitude, max_miles * KM_PER_MILE
    )

    results = []
    for candidate in candidates:
        if candidate.slug == origin.slug:
            continue
        if candidate.latitude is None or candidate.longitude is None:
            continue
        # Quick bounding box check before expensive haversine
        if not (min_lat <= candidate.latitude <= max_lat):
            continue
        if not (min_lon <= candidate.longitude <= max_lon):
            continue

        distance = haversine_miles(
            origin.latitude, origin.longitude, candidate.latitude, candidate.longitude
        )
        if distance <= max_miles:
            results.append((candidate, round(distance, 1)))

    results.sort(key=lambda pair: pair[1])
    return results[:limit]

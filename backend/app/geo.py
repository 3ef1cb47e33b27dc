from __future__ import annotations

import math

EARTH_RADIUS_KM = 6371.0
MAX_RADIUS_METERS = 40000
MAX_RESULTS = 50


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two coordinates, in kilometres."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    return haversine_km(lat1, lon1, lat2, lon2) * 1000


def clamp_radius(radius: int | None, default: int | None = None) -> int | None:
    value = radius or default
    if value is None:
        return None
    return min(int(value), MAX_RADIUS_METERS)


def clamp_limit(limit: int | None, default: int | None = None) -> int | None:
    value = limit or default
    if value is None:
        return None
    return min(int(value), MAX_RESULTS)


def parse_coordinate_string(raw: str) -> tuple[float, float]:
    payload = (raw or "").strip()
    parts = [p.strip() for p in payload.split(",", 1)]
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise ValueError("Invalid coordinate format. Use 'lat,lon'.")
    try:
        lat = float(parts[0])
        lon = float(parts[1])
    except ValueError as exc:
        raise ValueError("Invalid coordinate format. Use 'lat,lon'.") from exc
    if not (-90 <= lat <= 90) or not (-180 <= lon <= 180):
        raise ValueError("Coordinates out of range")
    return lat, lon


def has_coordinates(latitude: float | None, longitude: float | None) -> bool:
    return latitude is not None and longitude is not None


__all__ = [
    "EARTH_RADIUS_KM",
    "MAX_RADIUS_METERS",
    "MAX_RESULTS",
    "clamp_limit",
    "clamp_radius",
    "has_coordinates",
    "parse_coordinate_string",
    "haversine_km",
    "haversine_m",
]

"""
Great-circle distance helpers
"""

import json
from math import radians, sin, cos, asin, sqrt
from typing import NamedTuple, Optional

EARTH_RADIUS_KM = 6371


class Coordinates(NamedTuple):
    latitude: float
    longitude: float


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate the great-circle distance between two points on the Earth in km.
    """
    dlat = radians(lat2 - lat1)
    dlon = radians(lon2 - lon1)
    a = sin(dlat / 2) ** 2 + cos(radians(lat1)) * cos(radians(lat2)) * sin(dlon / 2) ** 2
    return 2 * EARTH_RADIUS_KM * asin(sqrt(a))


def distance_between(origin: Coordinates, target: Coordinates) -> float:
    return haversine_km(origin.latitude, origin.longitude, target.latitude, target.longitude)


def format_distance(distance_km: float) -> str:
    """Human readable distance: metres below 1 km, one decimal below 10 km, whole km above"""
    metres = round(distance_km * 1000)
    if metres < 1000:
        return f"{metres} m"
    if round(distance_km, 1) < 10:
        return f"{distance_km:.1f} km"
    return f"{round(distance_km)} km"


def parse_coordinates(location) -> Optional[Coordinates]:
    """
    Extract coordinates from a stored location.

    Accepts a dict or a JSON string with latitude/longitude (or lat/lon) keys.
    Returns None when the value is missing, malformed or out of range.
    """
    if not location:
        return None
    if isinstance(location, str):
        try:
            location = json.loads(location)
        except ValueError:
            return None
    if not isinstance(location, dict):
        return None

    lat = location.get("latitude", location.get("lat"))
    lon = location.get("longitude", location.get("lon"))
    if lat is None or lon is None or isinstance(lat, bool) or isinstance(lon, bool):
        return None
    try:
        lat, lon = float(lat), float(lon)
    except (TypeError, ValueError):
        return None
    if not (-90 <= lat <= 90 and -180 <= lon <= 180):
        return None
    return Coordinates(lat, lon)

from __future__ import annotations

from math import atan2, cos, degrees, radians, sin, sqrt
from typing import NamedTuple, Sequence


EARTH_RADIUS_KM = 6371.0


class Coordinate(NamedTuple):
    latitude: float
    longitude: float


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate the great circle distance in kilometers between two points
    on the earth (specified in decimal degrees).
    """
    lat1_rad, lon1_rad = radians(lat1), radians(lon1)
    lat2_rad, lon2_rad = radians(lat2), radians(lon2)

    dlat = lat2_rad - lat1_rad
    dlon = lon2_rad - lon1_rad

    a = sin(dlat / 2) ** 2 + cos(lat1_rad) * cos(lat2_rad) * sin(dlon / 2) ** 2
    c = 2 * atan2(sqrt(a), sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def initial_bearing(start: Coordinate, end: Coordinate) -> float:
    """Compass bearing in degrees [0, 360) for travelling from ``start`` to ``end``."""
    lat1, lat2 = radians(start.latitude), radians(end.latitude)
    dlon = radians(end.longitude - start.longitude)
    x = sin(dlon) * cos(lat2)
    y = cos(lat1) * sin(lat2) - sin(lat1) * cos(lat2) * cos(dlon)
    return (degrees(atan2(x, y)) + 360) % 360


def decode_polyline(encoded: str, precision: int = 5) -> list[Coordinate]:
    """Decode a Google encoded polyline into an ordered list of coordinates.

    See https://developers.google.com/maps/documentation/utilities/polylinealgorithm
    """
    factor = 10**precision
    points: list[Coordinate] = []
    index = 0
    lat = 0
    lng = 0

    while index < len(encoded):
        deltas: list[int] = []
        for _ in range(2):
            shift = 0
            value = 0
            while True:
                chunk = ord(encoded[index]) - 63
                index += 1
                value |= (chunk & 0x1F) << shift
                shift += 5
                if chunk < 0x20:
                    break
            deltas.append(~(value >> 1) if value & 1 else value >> 1)
        lat += deltas[0]
        lng += deltas[1]
        points.append(Coordinate(lat / factor, lng / factor))

    return points


def nearest_path_point(point: Coordinate, path: Sequence[Coordinate]) -> Coordinate | None:
    """
    Return the vertex of ``path`` closest to ``point``.

    Uses squared Euclidean distance in lat/lng space, which is accurate enough at
    road scale to pick the right vertex.
    """
    best: Coordinate | None = None
    best_distance = float("inf")
    for vertex in path:
        dlat = vertex.latitude - point.latitude
        dlng = vertex.longitude - point.longitude
        distance = dlat * dlat + dlng * dlng
        if distance < best_distance:
            best_distance = distance
            best = vertex
    return best

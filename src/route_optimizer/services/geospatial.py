"""Geospatial helper functions."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence

import numpy as np
from shapely.geometry import MultiPoint

from ..models.domain import Location, Stop

EARTH_RADIUS_KM = 6371.0
# Flat degree-to-km factor; fine near the equator, overstates east-west extent elsewhere.
KM_PER_DEGREE = 111.0
COMPASS_POINTS = ("N", "NE", "E", "SE", "S", "SW", "W", "NW")


@dataclass(frozen=True, slots=True)
class BoundingBox:
    north: float
    south: float
    east: float
    west: float

    @property
    def lat_spread(self) -> float:
        return self.north - self.south

    @property
    def lng_spread(self) -> float:
        return self.east - self.west


@dataclass(frozen=True, slots=True)
class Direction:
    bearing: float
    name: str


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute distance between two coordinates using the Haversine formula."""

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def distance_between(a: Location, b: Location) -> float:
    return haversine_km(a.lat, a.lng, b.lat, b.lng)


def bearing_degrees(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate the initial bearing from (lat1, lon1) to (lat2, lon2)."""

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_lambda = math.radians(lon2 - lon1)
    y = math.sin(delta_lambda) * math.cos(phi2)
    x = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(delta_lambda)
    bearing = math.degrees(math.atan2(y, x))
    return (bearing + 360) % 360


def bearing_between(a: Location, b: Location) -> float:
    return bearing_degrees(a.lat, a.lng, b.lat, b.lng)


def bearing_to_compass(bearing: float) -> str:
    return COMPASS_POINTS[math.floor(bearing / 45 + 0.5) % 8]


def _multipoint(stops: Sequence[Stop]) -> MultiPoint:
    if not stops:
        raise ValueError("At least one stop is required.")
    return MultiPoint([(stop.location.lng, stop.location.lat) for stop in stops])


def centroid(stops: Sequence[Stop]) -> Location:
    """Arithmetic mean of the stop coordinates."""
    point = _multipoint(stops).centroid
    return Location(lat=point.y, lng=point.x)


def bounding_box(stops: Sequence[Stop]) -> BoundingBox:
    west, south, east, north = _multipoint(stops).bounds
    return BoundingBox(north=north, south=south, east=east, west=west)


def primary_direction(stops: Sequence[Stop]) -> Direction:
    """Dominant travel axis of a stop set.

    Falls back to the bearing from the first to the last stop (input order)
    when neither spread dominates the other by 1.5x.
    """
    bounds = bounding_box(stops)
    if bounds.lat_spread > bounds.lng_spread * 1.5:
        return Direction(bearing=0.0, name="North-South")
    if bounds.lng_spread > bounds.lat_spread * 1.5:
        return Direction(bearing=90.0, name="East-West")
    bearing = bearing_between(stops[0].location, stops[-1].location)
    return Direction(bearing=bearing, name=bearing_to_compass(bearing))


def project_onto_axis(location: Location, bearing: float) -> float:
    """Scalar ordering key along ``bearing``; a planar rotation, not a geodesic projection."""
    rad = math.radians(bearing)
    return location.lng * math.cos(rad) + location.lat * math.sin(rad)


def pairwise_haversine_km(
    lat_a: np.ndarray, lng_a: np.ndarray, lat_b: np.ndarray, lng_b: np.ndarray
) -> np.ndarray:
    """Haversine distances (km) between every point of ``a`` (rows) and ``b`` (columns)."""
    phi_a = np.radians(np.asarray(lat_a, dtype=float))[:, None]
    phi_b = np.radians(np.asarray(lat_b, dtype=float))[None, :]
    d_phi = phi_b - phi_a
    d_lambda = np.radians(np.asarray(lng_b, dtype=float))[None, :] - np.radians(np.asarray(lng_a, dtype=float))[:, None]
    a = np.sin(d_phi / 2) ** 2 + np.cos(phi_a) * np.cos(phi_b) * np.sin(d_lambda / 2) ** 2
    a = np.clip(a, 0.0, 1.0)
    return 2 * EARTH_RADIUS_KM * np.arctan2(np.sqrt(a), np.sqrt(1 - a))


def coordinates(stops: Sequence[Stop]) -> tuple[np.ndarray, np.ndarray]:
    lat = np.array([stop.location.lat for stop in stops], dtype=float)
    lng = np.array([stop.location.lng for stop in stops], dtype=float)
    return lat, lng


def distance_matrix(stops: Sequence[Stop]) -> np.ndarray:
    """Pairwise haversine distances (km) as an ``n x n`` array."""
    if not stops:
        return np.zeros((0, 0))
    lat, lng = coordinates(stops)
    matrix = pairwise_haversine_km(lat, lng, lat, lng)
    np.fill_diagonal(matrix, 0.0)
    return matrix


def total_distance(route: Sequence[Stop]) -> float:
    """Sum of consecutive leg lengths (km) of an open route."""
    return sum(
        distance_between(route[index].location, route[index + 1].location)
        for index in range(len(route) - 1)
    )


def _leg_bearing_differences(route: Sequence[Stop]) -> list[float]:
    differences = []
    for index in range(1, len(route) - 1):
        incoming = bearing_between(route[index - 1].location, route[index].location)
        outgoing = bearing_between(route[index].location, route[index + 1].location)
        differences.append(abs(incoming - outgoing))
    return differences


def count_backtracks(route: Sequence[Stop]) -> int:
    """Count turns sharper than 90 degrees between consecutive legs."""
    return sum(1 for diff in _leg_bearing_differences(route) if 90 < diff < 270)


def count_direction_changes(route: Sequence[Stop], threshold_degrees: float = 45.0) -> int:
    changes = 0
    for diff in _leg_bearing_differences(route):
        turn = min(diff, 360 - diff)
        if turn > threshold_degrees:
            changes += 1
    return changes

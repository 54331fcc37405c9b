"""K-means zone partitioning for spread-out stop sets."""

from __future__ import annotations

import logging
import math
from typing import Sequence, Union

import numpy as np
from sklearn.cluster import kmeans_plusplus

from ...models.domain import Location, Stop, Zone
from ..geospatial import EARTH_RADIUS_KM, centroid, coordinates, distance_between, pairwise_haversine_km
from ..routing.clustering import most_pickups, order_by_nearest_center

logger = logging.getLogger(__name__)

RandomState = Union[int, np.random.RandomState, None]

MAX_REFINEMENT_ITERATIONS = 50
CONVERGENCE_KM = 0.01


def zone_count(stop_count: int) -> int:
    """``ceil(sqrt(n / 2))`` zones, never more than there are stops."""
    if stop_count <= 0:
        return 0
    return min(stop_count, math.ceil(math.sqrt(stop_count / 2)))


def _convert_to_cartesian(lat: np.ndarray, lng: np.ndarray, origin: Location) -> np.ndarray:
    """Equirectangular projection (km) around ``origin``; adequate for city-scale extents."""
    lat_ref_rad = np.radians(origin.lat)
    x = EARTH_RADIUS_KM * (np.radians(lng) - np.radians(origin.lng)) * np.cos(lat_ref_rad)
    y = EARTH_RADIUS_KM * (np.radians(lat) - lat_ref_rad)
    return np.column_stack([x, y])


def _seed_centers(stops: Sequence[Stop], k: int, random_state: RandomState) -> list[Location]:
    """k-means++ seeding: first seed uniform, later seeds weighted by squared distance."""
    lat, lng = coordinates(stops)
    projected = _convert_to_cartesian(lat, lng, centroid(stops))
    # one local trial: plain D^2-weighted sampling rather than greedy k-means++
    _, indices = kmeans_plusplus(projected, n_clusters=k, random_state=random_state, n_local_trials=1)
    return [stops[int(index)].location for index in indices]


def create_zones(
    stops: Sequence[Stop],
    *,
    random_state: RandomState = None,
    max_iterations: int = MAX_REFINEMENT_ITERATIONS,
    tolerance_km: float = CONVERGENCE_KM,
) -> list[Zone]:
    """Partition stops into ``ceil(sqrt(n/2))`` zones with haversine k-means.

    Refinement stops once no centre moves by more than ``tolerance_km`` or
    after ``max_iterations``; in the latter case the last partition is kept.
    Empty zones are discarded.
    """
    k = zone_count(len(stops))
    if k == 0:
        return []

    centers = _seed_centers(stops, k, random_state)
    lat, lng = coordinates(stops)
    labels = np.zeros(len(stops), dtype=int)
    converged = False

    for _ in range(max_iterations):
        center_lat = np.array([center.lat for center in centers])
        center_lng = np.array([center.lng for center in centers])
        # argmin keeps the first centre on ties
        labels = np.argmin(pairwise_haversine_km(lat, lng, center_lat, center_lng), axis=1)

        converged = True
        for index in range(len(centers)):
            members = [stop for stop, label in zip(stops, labels) if label == index]
            if not members:
                continue
            new_center = centroid(members)
            if distance_between(centers[index], new_center) > tolerance_km:
                converged = False
            centers[index] = new_center
        if converged:
            break

    if not converged:
        logger.info("Zone refinement hit %d iterations without converging; keeping last partition", max_iterations)

    zones: list[Zone] = []
    for index in range(len(centers)):
        members = [stop for stop, label in zip(stops, labels) if label == index]
        if not members:
            continue
        number = len(zones) + 1
        zones.append(
            Zone(zone_id=f"Z{number:02d}", name=f"Zone {number}", stops=members, center=centroid(members))
        )
    return zones


def order_zones(zones: Sequence[Zone]) -> list[Zone]:
    """Nearest-neighbour walk over zone centres, starting from the zone with most pickups."""
    if len(zones) <= 1:
        return list(zones)
    start = most_pickups(zones, lambda zone: zone.pickup_count)
    return order_by_nearest_center(zones, lambda zone: zone.center, start)

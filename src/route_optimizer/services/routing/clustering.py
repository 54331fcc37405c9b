"""Greedy proximity clustering and nearest-neighbour ordering helpers."""

from __future__ import annotations

from typing import Callable, Sequence, TypeVar

from ...config import OptimizerConfig
from ...models.domain import Cluster, Location, Stop
from ..geospatial import centroid, distance_between

T = TypeVar("T")

# Deliveries win ties against pickups at roughly equal distance.
DELIVERY_SCORE_FACTOR = 0.9


def identify_clusters(stops: Sequence[Stop], radius_km: float) -> list[Cluster]:
    """Single greedy pass: each unassigned stop seeds a cluster of everything within ``radius_km``.

    Membership is measured from the seed's own location; the centre is only
    replaced by the centroid once the cluster is complete.
    """
    clusters: list[Cluster] = []
    assigned: set[str] = set()
    for seed in stops:
        if seed.id in assigned:
            continue
        members = [seed]
        assigned.add(seed.id)
        for other in stops:
            if other.id in assigned:
                continue
            if distance_between(seed.location, other.location) <= radius_km:
                members.append(other)
                assigned.add(other.id)
        clusters.append(
            Cluster(cluster_id=f"C{len(clusters) + 1:02d}", stops=members, center=centroid(members))
        )
    return clusters


def order_by_nearest_center(groups: Sequence[T], center_of: Callable[[T], Location], start: T) -> list[T]:
    ordered = [start]
    remaining = [group for group in groups if group is not start]
    while remaining:
        current = center_of(ordered[-1])
        nearest = min(remaining, key=lambda group: distance_between(current, center_of(group)))
        ordered.append(nearest)
        remaining.remove(nearest)
    return ordered


def most_pickups(groups: Sequence[T], pickup_count: Callable[[T], int]) -> T:
    best = groups[0]
    for group in groups[1:]:
        if pickup_count(group) > pickup_count(best):
            best = group
    return best


def order_clusters(clusters: Sequence[Cluster]) -> list[Cluster]:
    """Nearest-neighbour walk over cluster centres, starting from the cluster with most pickups."""
    if len(clusters) <= 1:
        return list(clusters)
    start = most_pickups(clusters, lambda cluster: cluster.pickup_count)
    return order_by_nearest_center(clusters, lambda cluster: cluster.center, start)


def nearest_neighbor(stops: Sequence[Stop], start: Location | None = None) -> list[Stop]:
    """Order stops greedily by proximity.

    Without ``start`` the walk begins at the first stop; otherwise the first
    stop chosen is the one nearest to ``start``.
    """
    remaining = list(stops)
    if len(remaining) <= 1:
        return remaining
    route: list[Stop] = []
    if start is None:
        route.append(remaining.pop(0))
        current = route[0].location
    else:
        current = start
    while remaining:
        nearest = min(remaining, key=lambda stop: distance_between(current, stop.location))
        route.append(nearest)
        remaining.remove(nearest)
        current = nearest.location
    return route


def walk_cluster_stops(
    pickups: Sequence[Stop],
    deliveries: Sequence[Stop],
    start: Location,
    picked: set[str | None],
    config: OptimizerConfig,
) -> tuple[list[Stop], list[Stop]]:
    """Greedy walk over one group of stops beginning at ``start``.

    A delivery becomes a candidate only once its parcel is in ``picked``,
    which is shared with the caller and updated in place. Returns the
    ordered stops and the deliveries that never became eligible.
    """
    route: list[Stop] = []
    remaining_pickups = list(pickups)
    remaining_deliveries = list(deliveries)
    current = start

    while remaining_pickups or remaining_deliveries:
        next_stop: Stop | None = None
        best_score = float("inf")

        for pickup in remaining_pickups:
            score = distance_between(current, pickup.location)
            if score < best_score:
                best_score = score
                next_stop = pickup

        for delivery in remaining_deliveries:
            if delivery.parcel_code not in picked:
                continue
            score = distance_between(current, delivery.location) * DELIVERY_SCORE_FACTOR
            if score < best_score:
                best_score = score
                next_stop = delivery

        if next_stop is None:
            break

        route.append(next_stop)
        current = next_stop.location

        if next_stop.is_delivery:
            remaining_deliveries.remove(next_stop)
            continue

        remaining_pickups.remove(next_stop)
        picked.add(next_stop.parcel_code)
        if not config.enable_smart_pairing:
            continue
        paired = next((d for d in remaining_deliveries if d.parcel_code == next_stop.parcel_code), None)
        if paired is not None and distance_between(current, paired.location) < config.immediate_delivery_radius:
            route.append(paired)
            current = paired.location
            remaining_deliveries.remove(paired)

    return route, remaining_deliveries

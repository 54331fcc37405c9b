"""Construction heuristics producing an initial precedence-respecting route."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Sequence

from ...config import OptimizerConfig
from ...models.domain import Cluster, Stop, StrategyType
from ..geospatial import distance_between, primary_direction, project_onto_axis
from ..zoning.kmeans import RandomState, create_zones, order_zones
from .clustering import (
    identify_clusters,
    nearest_neighbor,
    order_by_nearest_center,
    order_clusters,
    walk_cluster_stops,
)
from .refiner import apply_two_opt, refine_route
from .telemetry import Observer


@dataclass(slots=True)
class Construction:
    route: list[Stop]
    zones_created: int = 0


Executor = Callable[..., Construction]


def _split(stops: Sequence[Stop]) -> tuple[list[Stop], list[Stop]]:
    pickups = [stop for stop in stops if stop.is_pickup]
    deliveries = [stop for stop in stops if stop.is_delivery]
    return pickups, deliveries


def _release_ready(pending: list[Stop], picked: set[str | None]) -> tuple[list[Stop], list[Stop]]:
    ready = [stop for stop in pending if stop.parcel_code in picked]
    waiting = [stop for stop in pending if stop.parcel_code not in picked]
    return ready, waiting


def _projected_order(stops: Sequence[Stop]) -> list[Stop]:
    direction = primary_direction(stops)
    return sorted(stops, key=lambda stop: project_onto_axis(stop.location, direction.bearing))


def _paired_delivery(pickup: Stop, candidates: Sequence[Stop], completed: set[str], config: OptimizerConfig) -> Stop | None:
    """Matching delivery close enough to be dropped straight after ``pickup``."""
    if not config.enable_smart_pairing:
        return None
    delivery = next(
        (
            stop
            for stop in candidates
            if stop.is_delivery and stop.parcel_code == pickup.parcel_code and stop.id not in completed
        ),
        None,
    )
    if delivery is None:
        return None
    if distance_between(pickup.location, delivery.location) < config.immediate_delivery_radius:
        return delivery
    return None


def cluster_strategy(stops: Sequence[Stop], config: OptimizerConfig, **_: object) -> Construction:
    """Visit clusters one at a time, greedily inside each.

    Deliveries whose pickup sits in a later cluster are carried forward and
    offered again to each following cluster's walk.
    """
    clusters = order_clusters(identify_clusters(stops, config.cluster_radius))
    route: list[Stop] = []
    picked: set[str | None] = set()
    carried: list[Stop] = []
    for cluster in clusters:
        pickups, deliveries = _split(cluster.stops)
        walked, carried = walk_cluster_stops(pickups, carried + deliveries, cluster.center, picked, config)
        route.extend(walked)
    route.extend(carried)
    return Construction(route=route)


def directional_strategy(stops: Sequence[Stop], config: OptimizerConfig, **_: object) -> Construction:
    """Single sweep along the dominant axis of the stop set."""
    projected = _projected_order(stops)
    route: list[Stop] = []
    completed: set[str] = set()
    picked: set[str | None] = set()

    for stop in projected:
        if stop.id in completed:
            continue
        if stop.is_pickup:
            route.append(stop)
            completed.add(stop.id)
            picked.add(stop.parcel_code)
            delivery = _paired_delivery(stop, projected, completed, config)
            if delivery is not None:
                route.append(delivery)
                completed.add(delivery.id)
        elif stop.parcel_code in picked:
            route.append(stop)
            completed.add(stop.id)

    route.extend(stop for stop in projected if stop.id not in completed)
    return Construction(route=route)


def zone_strategy(
    stops: Sequence[Stop],
    config: OptimizerConfig,
    *,
    random_state: RandomState = None,
    **_: object,
) -> Construction:
    """Visit k-means zones in nearest-neighbour order.

    Inside a zone the pickups and local deliveries are walked greedily from
    the zone centre, then deliveries collected elsewhere are dropped off.
    """
    zones = order_zones(create_zones(stops, random_state=random_state))
    pickup_zone: dict[str | None, str] = {}
    for zone in zones:
        for stop in zone.stops:
            if stop.is_pickup:
                pickup_zone.setdefault(stop.parcel_code, zone.zone_id)

    route: list[Stop] = []
    picked: set[str | None] = set()
    carried: list[Stop] = []
    for zone in zones:
        pickups, deliveries = _split(zone.stops)
        local = [stop for stop in deliveries if pickup_zone.get(stop.parcel_code) == zone.zone_id]
        external = [stop for stop in deliveries if pickup_zone.get(stop.parcel_code) != zone.zone_id]

        walked, unreached = walk_cluster_stops(pickups, local, zone.center, picked, config)
        route.extend(walked)

        ready, carried = _release_ready(carried + external + unreached, picked)
        route.extend(nearest_neighbor(ready, start=zone.center))

    route.extend(carried)
    return Construction(route=route, zones_created=len(zones))


def best_delivery_position(route: Sequence[Stop], delivery: Stop, pickup_index: int) -> int:
    """Cheapest insertion index for ``delivery`` strictly after ``pickup_index``."""
    best_position = len(route)
    min_increase = float("inf")
    for position in range(pickup_index + 1, len(route) + 1):
        before = route[position - 1].location
        if position < len(route):
            after = route[position].location
            increase = (
                distance_between(before, delivery.location)
                + distance_between(delivery.location, after)
                - distance_between(before, after)
            )
        else:
            increase = distance_between(before, delivery.location)
        if increase < min_increase:
            min_increase = increase
            best_position = position
    return best_position


def tsp_strategy(stops: Sequence[Stop], config: OptimizerConfig, **_: object) -> Construction:
    """Nearest-neighbour pickup tour with cheapest feasible delivery insertion, then 2-opt."""
    pickups, deliveries = _split(stops)
    ordered_pickups = nearest_neighbor(pickups)
    route: list[Stop] = list(ordered_pickups)
    inserted: set[str] = set()

    for pickup in ordered_pickups:
        delivery = next(
            (stop for stop in deliveries if stop.parcel_code == pickup.parcel_code and stop.id not in inserted),
            None,
        )
        if delivery is None:
            continue
        pickup_index = next(index for index, stop in enumerate(route) if stop is pickup)
        route.insert(best_delivery_position(route, delivery, pickup_index), delivery)
        inserted.add(delivery.id)

    route.extend(stop for stop in deliveries if stop.id not in inserted)
    return Construction(route=apply_two_opt(route, config))


def _cluster_directional_order(cluster: Cluster, config: OptimizerConfig) -> list[Stop]:
    projected = _projected_order(cluster.stops)
    ordered: list[Stop] = []
    completed: set[str] = set()
    for stop in projected:
        if not stop.is_pickup or stop.id in completed:
            continue
        ordered.append(stop)
        completed.add(stop.id)
        delivery = _paired_delivery(stop, projected, completed, config)
        if delivery is not None:
            ordered.append(delivery)
            completed.add(delivery.id)
    ordered.extend(stop for stop in projected if stop.id not in completed)
    return ordered


def hybrid_strategy(
    stops: Sequence[Stop],
    config: OptimizerConfig,
    *,
    observer: Observer | None = None,
    **_: object,
) -> Construction:
    """Directional ordering inside each cluster, clusters chained by nearest centre, then local search."""
    clusters = identify_clusters(stops, config.cluster_radius)
    orders = {cluster.cluster_id: _cluster_directional_order(cluster, config) for cluster in clusters}
    sequence = order_by_nearest_center(clusters, lambda cluster: cluster.center, clusters[0]) if clusters else []

    route: list[Stop] = []
    picked: set[str | None] = set()
    pending: list[Stop] = []
    for cluster in sequence:
        for stop in orders[cluster.cluster_id]:
            if stop.is_pickup:
                route.append(stop)
                picked.add(stop.parcel_code)
            elif stop.parcel_code in picked:
                route.append(stop)
            else:
                pending.append(stop)
        ready, pending = _release_ready(pending, picked)
        route.extend(nearest_neighbor(ready, start=route[-1].location if route else None))

    route.extend(pending)
    return Construction(route=refine_route(route, config, observer))


EXECUTORS: dict[StrategyType, Executor] = {
    "cluster": cluster_strategy,
    "directional": directional_strategy,
    "zone": zone_strategy,
    "tsp": tsp_strategy,
    "hybrid": hybrid_strategy,
}


def execute_strategy(
    strategy: StrategyType,
    stops: Sequence[Stop],
    config: OptimizerConfig,
    *,
    random_state: RandomState = None,
    observer: Observer | None = None,
) -> Construction:
    try:
        executor = EXECUTORS[strategy]
    except KeyError as exc:
        raise ValueError(f"Unknown optimization strategy '{strategy}'.") from exc
    return executor(stops, config, random_state=random_state, observer=observer)

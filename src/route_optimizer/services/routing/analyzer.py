"""Route feature extraction used for strategy selection."""

from __future__ import annotations

from statistics import fmean, pvariance
from typing import Sequence

from ...config import OptimizerConfig
from ...models.domain import PairingStats, RouteAnalysis, RouteShape, Stop
from ..geospatial import KM_PER_DEGREE, bounding_box, centroid, distance_between
from .clustering import identify_clusters

HIGH_DENSITY_STOPS_PER_KM2 = 10.0
LINEAR_ASPECT_MAX = 2.0
LINEAR_ASPECT_MIN = 0.5
CIRCULAR_VARIANCE_RATIO = 0.3
MIN_STOPS_FOR_SHAPE = 3
CLUSTERED_MIN_SIZE = 3


def _safe_ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator else 0.0


def analyze_pairings(stops: Sequence[Stop]) -> PairingStats:
    """Pickup-to-delivery distances for every pickup that has a matching delivery."""
    first_delivery: dict[str | None, Stop] = {}
    for stop in stops:
        if stop.is_delivery:
            first_delivery.setdefault(stop.parcel_code, stop)

    distances = [
        distance_between(pickup.location, first_delivery[pickup.parcel_code].location)
        for pickup in stops
        if pickup.is_pickup and pickup.parcel_code in first_delivery
    ]
    if not distances:
        return PairingStats()
    return PairingStats(
        pair_count=len(distances),
        average_distance_km=fmean(distances),
        min_distance_km=min(distances),
        max_distance_km=max(distances),
    )


def determine_route_shape(stops: Sequence[Stop]) -> RouteShape:
    if len(stops) < MIN_STOPS_FOR_SHAPE:
        return RouteShape(type="simple", description="Too few stops to determine shape")

    bounds = bounding_box(stops)
    aspect_ratio = _safe_ratio(bounds.lng_spread, bounds.lat_spread)
    # stops stacked on one point have no axis at all
    is_point = bounds.lat_spread == 0 and bounds.lng_spread == 0
    if not is_point and (aspect_ratio > LINEAR_ASPECT_MAX or aspect_ratio < LINEAR_ASPECT_MIN):
        return RouteShape(type="linear", description="Linear route pattern")

    center = centroid(stops)
    radii = [distance_between(stop.location, center) for stop in stops]
    # variance is in km^2 while the mean is in km
    if pvariance(radii) < fmean(radii) * CIRCULAR_VARIANCE_RATIO:
        return RouteShape(type="circular", description="Circular route pattern")

    return RouteShape(type="mixed", description="Mixed route pattern")


def analyze_route(stops: Sequence[Stop], config: OptimizerConfig) -> RouteAnalysis:
    """Compute spread, density, clustering, pairing and shape features of a validated stop set."""
    if not stops:
        raise ValueError("Cannot analyze an empty stop set.")

    bounds = bounding_box(stops)
    area_km2 = bounds.lat_spread * bounds.lng_spread * KM_PER_DEGREE * KM_PER_DEGREE
    density = _safe_ratio(len(stops), area_km2)

    clusters = identify_clusters(stops, config.cluster_radius)
    shape = determine_route_shape(stops)
    pickup_count = sum(1 for stop in stops if stop.is_pickup)

    return RouteAnalysis(
        total_stops=len(stops),
        pickup_count=pickup_count,
        delivery_count=len(stops) - pickup_count,
        lat_spread=bounds.lat_spread,
        lng_spread=bounds.lng_spread,
        density=density,
        cluster_count=len(clusters),
        average_cluster_size=_safe_ratio(sum(len(c.stops) for c in clusters), len(clusters)),
        pairing=analyze_pairings(stops),
        shape=shape,
        is_high_density=density > HIGH_DENSITY_STOPS_PER_KM2,
        is_clustered=len(clusters) > 1 and any(len(c.stops) > CLUSTERED_MIN_SIZE for c in clusters),
        is_linear=shape.type == "linear",
        is_circular=shape.type == "circular",
    )

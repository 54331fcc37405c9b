"""Strategy selection from route analysis."""

from __future__ import annotations

from ...config import OptimizerConfig
from ...models.domain import RouteAnalysis, StrategyChoice

ZONE_MIN_CLUSTERS = 3
TSP_MAX_STOPS = 10


def select_strategy(analysis: RouteAnalysis, config: OptimizerConfig) -> StrategyChoice:
    """Map route features to a construction strategy; first matching rule wins."""
    if analysis.is_high_density and analysis.is_clustered:
        return StrategyChoice(
            type="cluster",
            name="Cluster-Based Optimization",
            reason="High density with clear clusters - optimizing within and between clusters",
        )
    if analysis.is_linear:
        return StrategyChoice(
            type="directional",
            name="Directional Flow Optimization",
            reason="Linear route pattern detected - following natural flow",
        )
    if analysis.cluster_count > ZONE_MIN_CLUSTERS and config.enable_zoning:
        return StrategyChoice(
            type="zone",
            name="Zone-Based Optimization",
            reason="Multiple distinct zones detected - optimizing zone by zone",
        )
    if analysis.total_stops < TSP_MAX_STOPS:
        return StrategyChoice(
            type="tsp",
            name="Traveling Salesman Optimization",
            reason="Small route - nearest neighbour with full local search",
        )
    return StrategyChoice(
        type="hybrid",
        name="Hybrid Optimization",
        reason="Mixed characteristics - using combined approach",
    )

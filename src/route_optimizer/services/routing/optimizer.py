"""Route optimization engine."""

from __future__ import annotations

import logging
import time
from dataclasses import replace
from typing import Any, Callable, Iterable, Mapping, Sequence

from ...config import OptimizerConfig
from ...models.domain import (
    OptimizationResult,
    OptimizationStatistics,
    Stop,
    StrategyChoice,
)
from ..geospatial import count_backtracks, count_direction_changes, total_distance
from ..zoning.kmeans import RandomState
from .analyzer import analyze_route
from .executors import execute_strategy
from .refiner import refine_route
from .strategy import select_strategy
from .telemetry import LoggingObserver, Observer, OptimizationEvent
from .validator import check_route_integrity, is_permutation, validate_stops

logger = logging.getLogger(__name__)

calculate_total_distance = total_distance


def route_score(route: Sequence[Stop], config: OptimizerConfig) -> float:
    """Weighted route cost: distance plus penalties for backtracking and direction changes."""
    return (
        config.distance_weight * total_distance(route)
        + config.backtrack_penalty * count_backtracks(route)
        + config.direction_changes_penalty * count_direction_changes(route)
    )


def build_statistics(
    original: Sequence[Stop],
    optimized: Sequence[Stop],
    config: OptimizerConfig,
    *,
    strategy: StrategyChoice | None = None,
    zones_created: int = 0,
    execution_time_ms: float = 0.0,
    fallback_used: bool = False,
) -> OptimizationStatistics:
    original_distance = total_distance(original)
    optimized_distance = total_distance(optimized)
    saved = original_distance - optimized_distance
    return OptimizationStatistics(
        original_distance_km=original_distance,
        optimized_distance_km=optimized_distance,
        saved_distance_km=saved,
        saved_percentage=(saved / original_distance * 100) if original_distance else 0.0,
        backtracking_eliminated=count_backtracks(original) - count_backtracks(optimized),
        zones_created=zones_created,
        execution_time_ms=execution_time_ms,
        strategy=strategy.type if strategy else None,
        fallback_used=fallback_used,
        original_score=route_score(original, config),
        optimized_score=route_score(optimized, config),
    )


def optimize_route(
    stops: Iterable[Any],
    config: OptimizerConfig | None = None,
    *,
    observer: Observer | None = None,
    random_state: RandomState = None,
    id_factory: Callable[[], str] | None = None,
) -> OptimizationResult:
    """Order one courier's stops to minimise travel while keeping pickups before deliveries.

    Never raises for bad stop data: malformed records are dropped, and a
    route that fails the final integrity check is replaced by the validated
    stops in their input order.
    """
    started = time.perf_counter()
    config = config or OptimizerConfig.from_settings()
    observer = observer or LoggingObserver()

    raw = list(stops)
    validated = validate_stops(raw, id_factory=id_factory)
    observer(
        OptimizationEvent(
            phase="validated",
            details={"received": len(raw), "kept": len(validated), "dropped": len(raw) - len(validated)},
        )
    )
    if not validated:
        logger.warning("No valid stops to optimize")
        return OptimizationResult(route=[], statistics=OptimizationStatistics.empty(), config=config)

    analysis = analyze_route(validated, config)
    observer(
        OptimizationEvent(
            phase="analysis",
            details={
                "total_stops": analysis.total_stops,
                "density": round(analysis.density, 3),
                "cluster_count": analysis.cluster_count,
                "shape": analysis.shape.type,
            },
        )
    )

    strategy = select_strategy(analysis, config)
    observer(
        OptimizationEvent(
            phase="strategy_selected",
            details={"strategy": strategy.type, "name": strategy.name, "reason": strategy.reason},
        )
    )

    construction = execute_strategy(
        strategy.type, validated, config, random_state=random_state, observer=observer
    )
    observer(
        OptimizationEvent(
            phase="constructed",
            details={"strategy": strategy.type, "distance_km": round(total_distance(construction.route), 3)},
        )
    )

    candidates = [refine_route(construction.route, config, observer)]
    if check_route_integrity(validated):
        # a feasible input order is a valid starting point too; keep whichever ends shorter
        candidates.append(refine_route(validated, config, observer))
    feasible = [
        candidate
        for candidate in candidates
        if check_route_integrity(candidate) and is_permutation(candidate, validated)
    ]
    if feasible and feasible[0] is not candidates[0]:
        logger.warning("Strategy '%s' produced an invalid route; using refined input order", strategy.type)

    fallback_used = False
    if feasible:
        route = min(feasible, key=total_distance)
    else:
        observer(
            OptimizationEvent(
                phase="integrity_failed",
                details={"strategy": strategy.type, "stops": len(validated)},
            )
        )
        logger.error("Route integrity check failed for strategy '%s', returning original order", strategy.type)
        route = list(validated)
        fallback_used = True

    statistics = build_statistics(
        validated,
        route,
        config,
        strategy=strategy,
        zones_created=construction.zones_created,
        fallback_used=fallback_used,
    )
    statistics = replace(statistics, execution_time_ms=(time.perf_counter() - started) * 1000)
    observer(
        OptimizationEvent(
            phase="completed",
            details={
                "saved_distance_km": round(statistics.saved_distance_km, 3),
                "saved_percentage": round(statistics.saved_percentage, 1),
                "backtracking_eliminated": statistics.backtracking_eliminated,
                "execution_time_ms": round(statistics.execution_time_ms, 2),
            },
        )
    )
    return OptimizationResult(route=route, statistics=statistics, config=config, analysis=analysis)


class RouteOptimizer:
    """Holds an optimizer configuration and the statistics of the latest run.

    Safe to reuse sequentially. Concurrent callers should use
    :func:`optimize_route` directly, which keeps everything call-local.
    """

    def __init__(
        self,
        config: OptimizerConfig | Mapping[str, Any] | None = None,
        *,
        observer: Observer | None = None,
        random_state: RandomState = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        if isinstance(config, OptimizerConfig):
            self._config = config
        else:
            self._config = OptimizerConfig.from_settings().merged(config)
        self.observer = observer
        self.random_state = random_state
        self.id_factory = id_factory
        self._statistics = OptimizationStatistics.empty()

    def optimize(self, stops: Iterable[Any], overrides: Mapping[str, Any] | None = None) -> OptimizationResult:
        result = optimize_route(
            stops,
            self._config.merged(overrides),
            observer=self.observer,
            random_state=self.random_state,
            id_factory=self.id_factory,
        )
        self._statistics = result.statistics
        return result

    def optimize_route(self, stops: Iterable[Any], overrides: Mapping[str, Any] | None = None) -> list[Stop]:
        return self.optimize(stops, overrides).route

    def get_statistics(self) -> OptimizationStatistics:
        return self._statistics

    def get_config(self) -> OptimizerConfig:
        return self._config

    def update_config(self, overrides: Mapping[str, Any] | None = None, **kwargs: Any) -> OptimizerConfig:
        self._config = self._config.merged(overrides, **kwargs)
        return self._config

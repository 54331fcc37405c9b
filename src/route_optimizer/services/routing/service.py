"""Routing orchestration service."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError

from ...config import OptimizerConfig, settings
from ...models.domain import OptimizationResult
from ...schemas.routing import OptimizeRequest, OptimizeResponse
from ..outputs.routing_formatter import optimization_result_to_json
from .optimizer import build_statistics, optimize_route
from .validator import validate_stops

logger = logging.getLogger(__name__)


def _build_config(payload: OptimizeRequest) -> OptimizerConfig:
    base = OptimizerConfig.from_settings()
    if payload.options is None:
        return base
    return base.merged(payload.options.model_dump(exclude_none=True))


def _unoptimized_result(payload: OptimizeRequest, config: OptimizerConfig) -> OptimizationResult:
    validated = validate_stops(payload.stops)
    return OptimizationResult(
        route=validated,
        statistics=build_statistics(validated, validated, config, fallback_used=True),
        config=config,
    )


def run_optimization(payload: OptimizeRequest, *, timeout_seconds: float | None = None) -> OptimizationResult:
    """Run the optimizer under a wall-clock budget.

    When the budget is exceeded the validated stops are returned in their
    input order. The worker thread cannot be interrupted and finishes in the
    background.
    """
    config = _build_config(payload)
    budget = timeout_seconds if timeout_seconds is not None else settings.optimization_time_budget_seconds

    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="route-optimizer")
    try:
        future = executor.submit(optimize_route, payload.stops, config, random_state=payload.random_seed)
        return future.result(timeout=budget)
    except FutureTimeoutError:
        logger.warning(
            "Route optimization exceeded %.1fs budget for %d stops; returning input order",
            budget,
            len(payload.stops),
        )
        return _unoptimized_result(payload, config)
    finally:
        executor.shutdown(wait=False)


def optimize_stops(payload: OptimizeRequest) -> OptimizeResponse:
    result = run_optimization(payload)
    return OptimizeResponse.model_validate(optimization_result_to_json(result))

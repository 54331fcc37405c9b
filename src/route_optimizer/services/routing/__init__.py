"""Route optimization engine exports."""

from .optimizer import RouteOptimizer, build_statistics, calculate_total_distance, optimize_route, route_score
from .telemetry import LoggingObserver, OptimizationEvent, RecordingObserver
from .validator import check_route_integrity, validate_stops

__all__ = [
    "RouteOptimizer",
    "optimize_route",
    "build_statistics",
    "calculate_total_distance",
    "route_score",
    "validate_stops",
    "check_route_integrity",
    "LoggingObserver",
    "RecordingObserver",
    "OptimizationEvent",
]

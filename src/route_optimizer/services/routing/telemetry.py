"""Phase-boundary events emitted by the optimizer."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Literal

logger = logging.getLogger(__name__)

Phase = Literal[
    "validated",
    "analysis",
    "strategy_selected",
    "constructed",
    "refinement_iteration",
    "integrity_failed",
    "completed",
]


@dataclass(frozen=True, slots=True)
class OptimizationEvent:
    phase: Phase
    details: dict[str, Any] = field(default_factory=dict)


Observer = Callable[[OptimizationEvent], None]


class LoggingObserver:
    """Forward optimizer events to the standard logging tree."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        self.log = log or logger

    def __call__(self, event: OptimizationEvent) -> None:
        level = logging.ERROR if event.phase == "integrity_failed" else logging.INFO
        if event.phase == "refinement_iteration":
            level = logging.DEBUG
        self.log.log(level, "route optimization %s: %s", event.phase, event.details)


class RecordingObserver:
    """Keep every event in memory, mostly useful for tests and diagnostics."""

    def __init__(self) -> None:
        self.events: list[OptimizationEvent] = []

    def __call__(self, event: OptimizationEvent) -> None:
        self.events.append(event)

    def phases(self) -> list[str]:
        return [event.phase for event in self.events]


def null_observer(event: OptimizationEvent) -> None:
    return None

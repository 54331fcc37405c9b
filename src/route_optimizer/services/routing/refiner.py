"""Precedence-aware local search: 2-opt, 3-opt and Or-opt.

The refiner works on index permutations over a precomputed distance matrix.
Every move it applies shortens the route by more than the configured
``convergence_threshold``, so once an iteration makes no change the route is
a fixed point and refining it again is a no-op.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np

from ...config import OptimizerConfig
from ...models.domain import Stop
from ..geospatial import distance_matrix
from .telemetry import OptimizationEvent, Observer, null_observer

THREE_OPT_MAX_STOPS = 20
OR_OPT_SEGMENT_SIZES = (1, 2, 3)


class LocalSearchRefiner:
    """Improve a feasible route without moving any delivery ahead of its pickup."""

    def __init__(
        self,
        stops: Sequence[Stop],
        config: OptimizerConfig,
        observer: Observer | None = None,
    ) -> None:
        self.stops = list(stops)
        self.config = config
        self.threshold = config.convergence_threshold
        self.observer = observer or null_observer
        self.matrix = distance_matrix(self.stops)
        self._codes = [stop.parcel_code for stop in self.stops]
        self._is_pickup = [stop.is_pickup for stop in self.stops]
        pickup_codes = {code for code, pickup in zip(self._codes, self._is_pickup) if pickup}
        # deliveries that have some pickup to respect; orphans are left unconstrained
        self._constrained = [
            not pickup and code in pickup_codes for code, pickup in zip(self._codes, self._is_pickup)
        ]

    # -- helpers -------------------------------------------------------------

    def length(self, order: Sequence[int]) -> float:
        if len(order) < 2:
            return 0.0
        index = np.asarray(order)
        return float(self.matrix[index[:-1], index[1:]].sum())

    def is_feasible(self, order: Sequence[int]) -> bool:
        picked: set[str | None] = set()
        for node in order:
            if self._is_pickup[node]:
                picked.add(self._codes[node])
            elif self._codes[node] not in picked:
                return False
        return True

    def _pickup_positions(self, order: Sequence[int]) -> dict[str | None, int]:
        positions: dict[str | None, int] = {}
        for position, node in enumerate(order):
            if self._is_pickup[node]:
                positions.setdefault(self._codes[node], position)
        return positions

    def _is_closed_segment(self, segment: Sequence[int]) -> bool:
        inside = {self._codes[node] for node in segment if self._is_pickup[node]}
        return all(
            self._codes[node] in inside for node in segment if self._constrained[node]
        )

    def can_reverse(self, order: Sequence[int], i: int, j: int, positions: dict[str | None, int]) -> bool:
        """Check that reversing ``order[i+1:j]`` keeps every delivery behind its pickup."""
        for k in range(i + 1, j):
            node = order[k]
            if not self._constrained[node]:
                continue
            pickup_at = positions[self._codes[node]]
            new_delivery_at = i + j - k
            new_pickup_at = i + j - pickup_at if i < pickup_at < j else pickup_at
            if new_pickup_at > new_delivery_at:
                return False
        return True

    # -- moves ---------------------------------------------------------------

    def two_opt(self, order: list[int]) -> list[int]:
        """First-improvement 2-opt, repeated until no reversal helps."""
        order = list(order)
        matrix = self.matrix
        improved = True
        while improved:
            improved = False
            positions = self._pickup_positions(order)
            n = len(order)
            for i in range(n - 2):
                for j in range(i + 2, n):
                    current = matrix[order[i], order[i + 1]] + matrix[order[j - 1], order[j]]
                    swapped = matrix[order[i], order[j - 1]] + matrix[order[i + 1], order[j]]
                    if swapped >= current - self.threshold:
                        continue
                    if not self.can_reverse(order, i, j, positions):
                        continue
                    order[i + 1:j] = order[i + 1:j][::-1]
                    improved = True
                    break
                if improved:
                    break
        return order

    @staticmethod
    def three_opt_variants(order: Sequence[int], i: int, j: int, k: int) -> list[list[int]]:
        head = list(order[: i + 1])
        first = list(order[i + 1: j + 1])
        second = list(order[j + 1: k + 1])
        tail = list(order[k + 1:])
        return [
            head + first + second + tail,
            head + first[::-1] + second + tail,
            head + first + second[::-1] + tail,
            head + first[::-1] + second[::-1] + tail,
            head + second + first + tail,
            head + second[::-1] + first[::-1] + tail,
        ]

    def three_opt(self, order: list[int]) -> list[int]:
        """One pass over all cut triples, keeping the best feasible reconnection of each."""
        order = list(order)
        n = len(order)
        for i in range(n - 3):
            for j in range(i + 2, n - 1):
                for k in range(j + 2, n):
                    best_distance = self.length(order) - self.threshold
                    best_variant = None
                    for variant in self.three_opt_variants(order, i, j, k)[1:]:
                        distance = self.length(variant)
                        if distance < best_distance and self.is_feasible(variant):
                            best_distance = distance
                            best_variant = variant
                    if best_variant is not None:
                        order = best_variant
        return order

    def _removal_gain(self, order: Sequence[int], start: int, end: int) -> float:
        matrix = self.matrix
        gain = 0.0
        before = order[start - 1] if start > 0 else None
        after = order[end] if end < len(order) else None
        if before is not None:
            gain += matrix[before, order[start]]
        if after is not None:
            gain += matrix[order[end - 1], after]
        if before is not None and after is not None:
            gain -= matrix[before, after]
        return gain

    def _insertion_cost(self, rest: Sequence[int], position: int, segment: Sequence[int]) -> float:
        matrix = self.matrix
        cost = 0.0
        before = rest[position - 1] if position > 0 else None
        after = rest[position] if position < len(rest) else None
        if before is not None:
            cost += matrix[before, segment[0]]
        if after is not None:
            cost += matrix[segment[-1], after]
        if before is not None and after is not None:
            cost -= matrix[before, after]
        return cost

    def or_opt(self, order: list[int]) -> list[int]:
        """Relocate precedence-closed segments of 1-3 stops to their best position."""
        order = list(order)
        for size in OR_OPT_SEGMENT_SIZES:
            start = 0
            while start + size <= len(order):
                segment = order[start: start + size]
                if not self._is_closed_segment(segment):
                    start += 1
                    continue
                gain = self._removal_gain(order, start, start + size)
                rest = order[:start] + order[start + size:]
                best_delta = -self.threshold
                best_candidate = None
                for position in range(len(rest) + 1):
                    if position == start:
                        continue
                    delta = self._insertion_cost(rest, position, segment) - gain
                    if delta >= best_delta:
                        continue
                    candidate = rest[:position] + segment + rest[position:]
                    if self.is_feasible(candidate):
                        best_delta = delta
                        best_candidate = candidate
                if best_candidate is not None:
                    order = best_candidate
                start += 1
        return order

    # -- driver --------------------------------------------------------------

    def refine(self, order: Sequence[int] | None = None) -> list[int]:
        """Run improvement passes until an iteration gains no more than the threshold."""
        order = list(range(len(self.stops))) if order is None else list(order)
        if len(order) < 3:
            return order
        for iteration in range(1, self.config.max_iterations + 1):
            before = self.length(order)
            order = self.two_opt(order)
            if len(order) < THREE_OPT_MAX_STOPS:
                order = self.three_opt(order)
            order = self.or_opt(order)
            gain = before - self.length(order)
            self.observer(
                OptimizationEvent(
                    phase="refinement_iteration",
                    details={"iteration": iteration, "improvement_km": round(gain, 4)},
                )
            )
            if gain <= self.threshold:
                break
        return order

    def apply(self, order: Sequence[int]) -> list[Stop]:
        return [self.stops[node] for node in order]


def refine_route(
    route: Sequence[Stop],
    config: OptimizerConfig,
    observer: Observer | None = None,
) -> list[Stop]:
    """Run the full local-search refinement over an already ordered route."""
    refiner = LocalSearchRefiner(route, config, observer)
    return refiner.apply(refiner.refine())


def apply_two_opt(route: Sequence[Stop], config: OptimizerConfig) -> list[Stop]:
    refiner = LocalSearchRefiner(route, config)
    return refiner.apply(refiner.two_opt(list(range(len(route)))))

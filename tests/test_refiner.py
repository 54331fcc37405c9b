import random

import pytest

from src.route_optimizer.config import OptimizerConfig
from src.route_optimizer.models.domain import Location, Stop
from src.route_optimizer.services.geospatial import total_distance
from src.route_optimizer.services.routing.refiner import LocalSearchRefiner, apply_two_opt, refine_route
from src.route_optimizer.services.routing.telemetry import RecordingObserver
from src.route_optimizer.services.routing.validator import check_route_integrity, is_permutation


def _stop(sid: str, kind: str, lat: float, lng: float, code: str) -> Stop:
    return Stop(id=sid, type=kind, location=Location(lat=lat, lng=lng), parcel_code=code)


def _random_feasible_route(rng: random.Random, pairs: int) -> list[Stop]:
    codes = [f"X{index}" for index in range(pairs) for _ in range(2)]
    rng.shuffle(codes)
    seen: set[str] = set()
    route = []
    for position, code in enumerate(codes):
        kind = "delivery" if code in seen else "pickup"
        seen.add(code)
        route.append(
            _stop(
                f"{kind[0].upper()}{code}-{position}",
                kind,
                24.70 + rng.uniform(-0.05, 0.05),
                46.70 + rng.uniform(-0.05, 0.05),
                code,
            )
        )
    return route


def test_two_opt_uncrosses_a_route():
    route = [
        _stop("A", "pickup", 24.00, 46.00, "A"),
        _stop("C", "pickup", 24.00, 46.02, "C"),
        _stop("B", "pickup", 24.00, 46.01, "B"),
        _stop("D", "pickup", 24.00, 46.03, "D"),
    ]
    refined = apply_two_opt(route, OptimizerConfig())
    assert [stop.id for stop in refined] == ["A", "B", "C", "D"]


def test_reversal_that_flips_an_inner_pair_is_rejected():
    route = [
        _stop("A", "pickup", 24.00, 46.00, "A"),
        _stop("P", "pickup", 24.00, 46.02, "X"),
        _stop("D", "delivery", 24.00, 46.01, "X"),
        _stop("B", "pickup", 24.00, 46.03, "B"),
    ]
    refiner = LocalSearchRefiner(route, OptimizerConfig())
    order = [0, 1, 2, 3]
    positions = refiner._pickup_positions(order)
    assert not refiner.can_reverse(order, 0, 3, positions)
    assert [stop.id for stop in refine_route(route, OptimizerConfig())] == ["A", "P", "D", "B"]


def test_reversal_keeping_delivery_after_outside_pickup_is_allowed():
    route = [
        _stop("P", "pickup", 24.00, 46.00, "X"),
        _stop("D", "delivery", 24.00, 46.02, "X"),
        _stop("B", "pickup", 24.00, 46.01, "B"),
        _stop("C", "pickup", 24.00, 46.03, "C"),
    ]
    refiner = LocalSearchRefiner(route, OptimizerConfig())
    order = [0, 1, 2, 3]
    assert refiner.can_reverse(order, 0, 3, refiner._pickup_positions(order))


def test_three_opt_variants_cover_six_reconnections():
    variants = LocalSearchRefiner.three_opt_variants([0, 1, 2, 3, 4, 5], 0, 2, 4)
    assert variants[0] == [0, 1, 2, 3, 4, 5]
    assert [0, 2, 1, 3, 4, 5] in variants
    assert [0, 3, 4, 1, 2, 5] in variants
    assert len(variants) == 6


def test_or_opt_moves_only_closed_segments():
    route = [
        _stop("P", "pickup", 24.00, 46.00, "X"),
        _stop("D", "delivery", 24.00, 46.01, "X"),
        _stop("Q", "pickup", 24.00, 46.02, "Y"),
    ]
    refiner = LocalSearchRefiner(route, OptimizerConfig())
    assert refiner._is_closed_segment([0, 1])
    assert not refiner._is_closed_segment([1])
    assert refiner._is_closed_segment([2])


def test_short_routes_are_returned_unchanged():
    route = [_stop("P", "pickup", 24.0, 46.0, "X"), _stop("D", "delivery", 24.1, 46.0, "X")]
    assert refine_route(route, OptimizerConfig()) == route
    assert refine_route([], OptimizerConfig()) == []


def test_refinement_reports_iterations():
    rng = random.Random(4)
    observer = RecordingObserver()
    refine_route(_random_feasible_route(rng, 5), OptimizerConfig(), observer)
    assert observer.phases()
    assert set(observer.phases()) == {"refinement_iteration"}
    assert observer.events[0].details["iteration"] == 1


def test_refinement_is_idempotent():
    rng = random.Random(21)
    config = OptimizerConfig()
    for _ in range(20):
        route = _random_feasible_route(rng, rng.randint(2, 7))
        once = refine_route(route, config)
        twice = refine_route(once, config)
        assert [stop.id for stop in twice] == [stop.id for stop in once]


@pytest.mark.parametrize("seed", range(5))
def test_refinement_never_breaks_precedence_or_lengthens(seed):
    rng = random.Random(seed)
    config = OptimizerConfig()
    for _ in range(25):
        route = _random_feasible_route(rng, rng.randint(1, 8))
        refined = refine_route(route, config)
        assert check_route_integrity(refined)
        assert is_permutation(refined, route)
        assert total_distance(refined) <= total_distance(route) + 1e-9

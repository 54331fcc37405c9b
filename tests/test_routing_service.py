import csv
import io
import time

from src.route_optimizer.schemas.routing import OptimizeRequest, OptimizerOptions
from src.route_optimizer.services.outputs.routing_formatter import (
    optimization_result_to_csv,
    optimization_result_to_json,
)
from src.route_optimizer.services.routing import service as routing_service


def _stop(sid: str, kind: str, lat: float, lng: float, code: str) -> dict:
    return {"id": sid, "type": kind, "location": {"lat": lat, "lng": lng}, "parcelCode": code}


def _payload(**kwargs) -> OptimizeRequest:
    stops = [
        _stop("D1", "delivery", 24.71, 46.70, "X1"),
        _stop("P1", "pickup", 24.70, 46.70, "X1"),
        _stop("P2", "pickup", 24.72, 46.70, "X2"),
        _stop("D2", "delivery", 24.73, 46.70, "X2"),
    ]
    return OptimizeRequest(stops=stops, **kwargs)


def test_optimize_stops_returns_response_model():
    response = routing_service.optimize_stops(_payload())

    assert [stop.id for stop in response.route] == ["P1", "D1", "P2", "D2"]
    assert response.route[0].parcel_code == "X1"
    assert response.statistics.strategy == "directional"
    assert response.config["immediateDeliveryRadius"] == 1.5


def test_request_options_override_defaults():
    payload = _payload(options=OptimizerOptions(enableSmartPairing=False, maxIterations=3))
    result = routing_service.run_optimization(payload)

    assert result.config.enable_smart_pairing is False
    assert result.config.max_iterations == 3
    assert result.config.cluster_radius == 2.0


def test_time_budget_returns_input_order(monkeypatch):
    def slow_optimize(stops, config, random_state=None):
        time.sleep(0.5)
        raise AssertionError("should have timed out")

    monkeypatch.setattr(routing_service, "optimize_route", slow_optimize)
    result = routing_service.run_optimization(_payload(), timeout_seconds=0.05)

    assert [stop.id for stop in result.route] == ["D1", "P1", "P2", "D2"]
    assert result.statistics.fallback_used
    assert result.statistics.saved_distance_km == 0.0


def test_result_serializers():
    result = routing_service.run_optimization(_payload())

    data = optimization_result_to_json(result)
    assert data["route"][0] == {
        "id": "P1",
        "type": "pickup",
        "location": {"lat": 24.70, "lng": 46.70},
        "parcelCode": "X1",
        "address": "Unknown",
    }
    assert data["statistics"]["strategy"] == "directional"
    assert "clusterRadius" in data["config"]

    rows = list(csv.DictReader(io.StringIO(optimization_result_to_csv(result))))
    assert [row["stop_id"] for row in rows] == ["P1", "D1", "P2", "D2"]
    assert rows[0]["sequence"] == "1"
    assert float(rows[0]["distance_from_prev_km"]) == 0.0
    assert float(rows[-1]["cumulative_distance_km"]) == round(result.statistics.optimized_distance_km, 4)

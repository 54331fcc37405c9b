import itertools

from src.route_optimizer.models.domain import Location, Stop
from src.route_optimizer.services.routing.validator import (
    check_route_integrity,
    is_permutation,
    validate_stops,
)


def _record(sid, kind, lat, lng, code, **extra) -> dict:
    return {"id": sid, "type": kind, "location": {"lat": lat, "lng": lng}, "parcelCode": code, **extra}


def _counter_ids():
    counter = itertools.count(1)
    return lambda: f"gen-{next(counter)}"


def test_malformed_records_are_dropped():
    records = [
        _record("P1", "pickup", 24.7, 46.6, "X1"),
        _record("bad-lat", "pickup", "NaN", 46.6, "X2"),
        _record("nan", "pickup", float("nan"), 46.6, "X3"),
        _record("transfer", "transfer", 24.7, 46.6, "X4"),
        _record("range", "delivery", 91.0, 46.6, "X5"),
        _record("flag", "delivery", True, 46.6, "X6"),
        {"id": "no-location", "type": "pickup", "parcelCode": "X7"},
        "not a record",
        _record("D1", "delivery", 24.71, 46.61, "X1"),
    ]
    validated = validate_stops(records)
    assert [stop.id for stop in validated] == ["P1", "D1"]


def test_missing_ids_come_from_factory_and_defaults_fill_in():
    records = [
        {"type": "pickup", "location": {"lat": 24.7, "lng": 46.6}, "code": "X1"},
        {"type": "delivery", "location": {"lat": 24.8, "lng": 46.7}, "parcel_code": "X1", "location_address": "Olaya St"},
    ]
    validated = validate_stops(records, id_factory=_counter_ids())

    assert [stop.id for stop in validated] == ["gen-1", "gen-2"]
    assert [stop.parcel_code for stop in validated] == ["X1", "X1"]
    assert validated[0].address == "Unknown"
    assert validated[1].address == "Olaya St"
    assert validated[0].location == Location(lat=24.7, lng=46.6)
    assert validated[0].raw["code"] == "X1"


def test_default_ids_are_unique():
    records = [{"type": "pickup", "location": {"lat": 24.7, "lng": 46.6}, "parcelCode": "X"}] * 3
    ids = {stop.id for stop in validate_stops(records)}
    assert len(ids) == 3


def test_duplicate_ids_are_kept_and_logged(caplog):
    records = [
        _record("S1", "pickup", 24.7, 46.6, "X1"),
        _record("S1", "delivery", 24.71, 46.6, "X1"),
    ]
    with caplog.at_level("WARNING"):
        validated = validate_stops(records)

    assert [stop.type for stop in validated] == ["pickup", "delivery"]
    assert "Duplicate stop id 'S1'" in caplog.text


def test_stop_instances_are_revalidated():
    good = Stop(id="P1", type="pickup", location=Location(lat=24.7, lng=46.6), parcel_code="X1")
    bad = Stop(id="P2", type="pickup", location=Location(lat=124.7, lng=46.6), parcel_code="X2")
    assert [stop.id for stop in validate_stops([good, bad])] == ["P1"]


def test_integrity_requires_pickup_before_delivery():
    pickup, delivery = validate_stops(
        [_record("P1", "pickup", 24.7, 46.6, "X1"), _record("D1", "delivery", 24.71, 46.6, "X1")]
    )
    assert check_route_integrity([pickup, delivery])
    assert not check_route_integrity([delivery, pickup])
    assert check_route_integrity([])


def test_is_permutation_compares_stop_identity():
    stops = validate_stops(
        [_record("P1", "pickup", 24.7, 46.6, "X1"), _record("D1", "delivery", 24.71, 46.6, "X1")]
    )
    assert is_permutation(list(reversed(stops)), stops)
    assert not is_permutation(stops[:1], stops)
    assert not is_permutation([stops[0], stops[0]], stops)

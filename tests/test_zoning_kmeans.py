import numpy as np

from src.route_optimizer.models.domain import Location, Stop
from src.route_optimizer.services.zoning import kmeans
from src.route_optimizer.services.zoning.kmeans import create_zones, order_zones, zone_count

CENTERS = [(24.60, 46.60), (24.60, 46.70), (24.70, 46.60), (24.70, 46.70), (24.65, 46.65)]
OFFSETS = [(0.0, 0.0), (0.001, 0.0), (0.0, 0.001), (0.001, 0.001)]


def _spread_stops() -> list[Stop]:
    stops = []
    for ci, (lat, lng) in enumerate(CENTERS):
        for si, (dlat, dlng) in enumerate(OFFSETS):
            kind = "pickup" if si < 2 else "delivery"
            stops.append(
                Stop(
                    id=f"{ci}-{si}",
                    type=kind,
                    location=Location(lat=lat + dlat, lng=lng + dlng),
                    parcel_code=f"X{ci}-{si % 2}",
                )
            )
    return stops


def _membership(zones):
    return [[stop.id for stop in zone.stops] for zone in zones]


def test_zone_count():
    assert zone_count(0) == 0
    assert zone_count(1) == 1
    assert zone_count(2) == 1
    assert zone_count(20) == 4
    assert zone_count(50) == 5


def test_zones_cover_every_stop_once():
    stops = _spread_stops()
    zones = create_zones(stops, random_state=3)

    assert 1 <= len(zones) <= 4
    ids = [stop.id for zone in zones for stop in zone.stops]
    assert sorted(ids) == sorted(stop.id for stop in stops)
    assert all(zone.stops for zone in zones)
    assert [zone.zone_id for zone in zones] == [f"Z{i:02d}" for i in range(1, len(zones) + 1)]
    assert zones[0].name == "Zone 1"


def test_seeded_partition_is_reproducible():
    stops = _spread_stops()
    first = create_zones(stops, random_state=11)
    second = create_zones(stops, random_state=np.random.RandomState(11))
    assert _membership(first) == _membership(second)


def test_unconverged_partition_is_kept():
    stops = _spread_stops()
    zones = create_zones(stops, random_state=5, max_iterations=1, tolerance_km=0.0)
    assert sum(len(zone.stops) for zone in zones) == len(stops)


def test_empty_input_has_no_zones():
    assert create_zones([]) == []


def test_order_zones_starts_with_most_pickups():
    stops = _spread_stops()
    zones = create_zones(stops, random_state=3)
    ordered = order_zones(zones)
    assert sorted(zone.zone_id for zone in ordered) == sorted(zone.zone_id for zone in zones)
    assert ordered[0].pickup_count == max(zone.pickup_count for zone in zones)


def test_seeding_uses_plain_weighted_sampling(monkeypatch):
    calls = []
    original = kmeans.kmeans_plusplus

    def recording_kmeans_plusplus(*args, **kwargs):
        calls.append(kwargs)
        return original(*args, **kwargs)

    monkeypatch.setattr(kmeans, "kmeans_plusplus", recording_kmeans_plusplus)
    create_zones(_spread_stops(), random_state=3)

    assert calls and calls[0]["n_local_trials"] == 1

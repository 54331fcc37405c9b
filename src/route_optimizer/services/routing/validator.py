"""Input normalization and route integrity checks."""

from __future__ import annotations

import logging
import math
import numbers
import uuid
from typing import Any, Callable, Iterable, Mapping, Sequence

from ...models.domain import STOP_TYPES, Location, Stop

logger = logging.getLogger(__name__)

PARCEL_CODE_FIELDS = ("parcelCode", "parcel_code", "code")
ADDRESS_FIELDS = ("address", "location_address")


def default_id_factory() -> str:
    return uuid.uuid4().hex


def _field(record: Any, name: str) -> Any:
    if isinstance(record, Mapping):
        return record.get(name)
    return getattr(record, name, None)


def _coordinate(value: Any, limit: float) -> float | None:
    # bool is a numbers.Real subclass, reject it explicitly
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        return None
    number = float(value)
    if not math.isfinite(number) or abs(number) > limit:
        return None
    return number


def _first_present(record: Mapping[str, Any], names: Sequence[str]) -> Any:
    for name in names:
        value = record.get(name)
        if value not in (None, ""):
            return value
    return None


def _normalize(record: Any, id_factory: Callable[[], str]) -> Stop | None:
    if isinstance(record, Stop):
        lat = _coordinate(record.location.lat, 90.0)
        lng = _coordinate(record.location.lng, 180.0)
        if lat is None or lng is None or record.type not in STOP_TYPES:
            return None
        return Stop(
            id=record.id or id_factory(),
            type=record.type,
            location=Location(lat=lat, lng=lng),
            parcel_code=record.parcel_code,
            address=record.address or "Unknown",
            raw=record.raw,
        )

    if not isinstance(record, Mapping):
        return None
    location = _field(record, "location")
    lat = _coordinate(_field(location, "lat"), 90.0) if location is not None else None
    lng = _coordinate(_field(location, "lng"), 180.0) if location is not None else None
    if lat is None or lng is None:
        return None
    stop_type = record.get("type")
    if stop_type not in STOP_TYPES:
        return None

    parcel_code = _first_present(record, PARCEL_CODE_FIELDS)
    return Stop(
        id=str(record.get("id") or id_factory()),
        type=stop_type,
        location=Location(lat=lat, lng=lng),
        parcel_code=str(parcel_code) if parcel_code is not None else None,
        address=str(_first_present(record, ADDRESS_FIELDS) or "Unknown"),
        raw=dict(record),
    )


def validate_stops(
    stops: Iterable[Any],
    id_factory: Callable[[], str] | None = None,
) -> list[Stop]:
    """Keep well-formed pickup/delivery records and normalize them into ``Stop``s.

    Malformed records are dropped and logged; they never raise. Duplicate
    ids break the uniqueness the heuristics rely on and are logged too.
    """
    id_factory = id_factory or default_id_factory
    validated: list[Stop] = []
    seen_ids: set[str] = set()
    for record in stops:
        stop = _normalize(record, id_factory)
        if stop is None:
            logger.warning("Dropping invalid stop record: %r", record)
            continue
        if stop.id in seen_ids:
            logger.warning("Duplicate stop id %r; stops sharing an id may be merged or dropped", stop.id)
        seen_ids.add(stop.id)
        validated.append(stop)
    return validated


def check_route_integrity(route: Sequence[Stop]) -> bool:
    """Return True when every delivery follows a pickup of the same parcel."""
    picked: set[str | None] = set()
    for stop in route:
        if stop.is_pickup:
            picked.add(stop.parcel_code)
        elif stop.parcel_code not in picked:
            return False
    return True


def is_permutation(route: Sequence[Stop], stops: Sequence[Stop]) -> bool:
    """Return True when ``route`` visits exactly the stops in ``stops``."""
    if len(route) != len(stops):
        return False
    return sorted(id(stop) for stop in route) == sorted(id(stop) for stop in stops)

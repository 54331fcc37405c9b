"""Serializers for optimization outputs."""

from __future__ import annotations

import csv
import io
from dataclasses import asdict

from ...models.domain import OptimizationResult, Stop
from ..geospatial import distance_between


def stop_to_json(stop: Stop) -> dict:
    return {
        "id": stop.id,
        "type": stop.type,
        "location": {"lat": stop.location.lat, "lng": stop.location.lng},
        "parcelCode": stop.parcel_code,
        "address": stop.address,
    }


def optimization_result_to_json(result: OptimizationResult) -> dict:
    return {
        "route": [stop_to_json(stop) for stop in result.route],
        "statistics": asdict(result.statistics),
        "config": result.config.as_options(),
    }


def optimization_result_to_csv(result: OptimizationResult) -> str:
    buffer = io.StringIO()
    fieldnames = [
        "sequence",
        "stop_id",
        "type",
        "parcel_code",
        "address",
        "lat",
        "lng",
        "distance_from_prev_km",
        "cumulative_distance_km",
    ]
    writer = csv.DictWriter(buffer, fieldnames=fieldnames)
    writer.writeheader()
    cumulative = 0.0
    previous: Stop | None = None
    for sequence, stop in enumerate(result.route, start=1):
        step = distance_between(previous.location, stop.location) if previous else 0.0
        cumulative += step
        writer.writerow(
            {
                "sequence": sequence,
                "stop_id": stop.id,
                "type": stop.type,
                "parcel_code": stop.parcel_code or "",
                "address": stop.address,
                "lat": stop.location.lat,
                "lng": stop.location.lng,
                "distance_from_prev_km": round(step, 4),
                "cumulative_distance_km": round(cumulative, 4),
            }
        )
        previous = stop
    return buffer.getvalue()

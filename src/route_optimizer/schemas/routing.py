"""Routing request/response schemas."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class OptimizerOptions(BaseModel):
    """Partial optimizer configuration; unset fields keep the server defaults."""

    model_config = ConfigDict(populate_by_name=True)

    immediate_delivery_radius: Optional[float] = Field(None, ge=0, alias="immediateDeliveryRadius")
    cluster_radius: Optional[float] = Field(None, ge=0, alias="clusterRadius")
    zone_radius: Optional[float] = Field(None, ge=0, alias="zoneRadius")
    distance_weight: Optional[float] = Field(None, ge=0, alias="distanceWeight")
    backtrack_penalty: Optional[float] = Field(None, ge=0, alias="backtrackPenalty")
    direction_changes_penalty: Optional[float] = Field(None, ge=0, alias="directionChangesPenalty")
    cluster_bonus: Optional[float] = Field(None, ge=0, alias="clusterBonus")
    enable_zoning: Optional[bool] = Field(None, alias="enableZoning")
    enable_smart_pairing: Optional[bool] = Field(None, alias="enableSmartPairing")
    max_lookahead: Optional[int] = Field(None, ge=1, alias="maxLookahead")
    max_iterations: Optional[int] = Field(None, ge=1, alias="maxIterations")
    convergence_threshold: Optional[float] = Field(None, ge=0, alias="convergenceThreshold")


class OptimizeRequest(BaseModel):
    stops: List[Dict[str, Any]] = Field(
        ...,
        description="Stop records ({type, location: {lat, lng}, parcelCode, id?, address?}). Malformed records are skipped.",
    )
    options: Optional[OptimizerOptions] = None
    random_seed: Optional[int] = Field(default=None, description="Seed for zone partitioning, for reproducible runs.")


class LocationModel(BaseModel):
    lat: float
    lng: float


class StopModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    type: str
    location: LocationModel
    parcel_code: Optional[str] = Field(None, alias="parcelCode")
    address: str = "Unknown"


class StatisticsModel(BaseModel):
    original_distance_km: float
    optimized_distance_km: float
    saved_distance_km: float
    saved_percentage: float
    backtracking_eliminated: int
    zones_created: int
    execution_time_ms: float
    strategy: Optional[str] = None
    fallback_used: bool = False
    original_score: float = 0.0
    optimized_score: float = 0.0


class OptimizeResponse(BaseModel):
    route: List[StopModel]
    statistics: StatisticsModel
    config: Dict[str, Any]

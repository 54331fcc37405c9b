"""Domain models for stops, groupings and optimization results."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal, Optional

if TYPE_CHECKING:
    from ..config import OptimizerConfig

StopType = Literal["pickup", "delivery"]
StrategyType = Literal["cluster", "directional", "zone", "tsp", "hybrid"]

PICKUP: StopType = "pickup"
DELIVERY: StopType = "delivery"
STOP_TYPES: tuple[str, ...] = (PICKUP, DELIVERY)


@dataclass(frozen=True, slots=True)
class Location:
    lat: float
    lng: float


@dataclass(slots=True)
class Stop:
    """One physical visit on a courier's route.

    ``id`` must be unique within a single optimization call; the validator
    fills missing ids from its id factory.
    """

    id: str
    type: StopType
    location: Location
    parcel_code: Optional[str]
    address: str = "Unknown"
    raw: dict = field(default_factory=dict)

    @property
    def is_pickup(self) -> bool:
        return self.type == PICKUP

    @property
    def is_delivery(self) -> bool:
        return self.type == DELIVERY


@dataclass(slots=True)
class Cluster:
    cluster_id: str
    stops: list[Stop]
    center: Location

    @property
    def pickup_count(self) -> int:
        return sum(1 for stop in self.stops if stop.is_pickup)


@dataclass(slots=True)
class Zone:
    zone_id: str
    name: str
    stops: list[Stop]
    center: Location

    @property
    def pickup_count(self) -> int:
        return sum(1 for stop in self.stops if stop.is_pickup)


@dataclass(frozen=True, slots=True)
class PairingStats:
    pair_count: int = 0
    average_distance_km: float = 0.0
    min_distance_km: float = 0.0
    max_distance_km: float = 0.0


@dataclass(frozen=True, slots=True)
class RouteShape:
    type: Literal["simple", "linear", "circular", "mixed"]
    description: str


@dataclass(slots=True)
class RouteAnalysis:
    """Geometric and statistical features used to pick a strategy."""

    total_stops: int
    pickup_count: int
    delivery_count: int
    lat_spread: float
    lng_spread: float
    density: float
    cluster_count: int
    average_cluster_size: float
    pairing: PairingStats
    shape: RouteShape
    is_high_density: bool
    is_clustered: bool
    is_linear: bool
    is_circular: bool


@dataclass(frozen=True, slots=True)
class StrategyChoice:
    type: StrategyType
    name: str
    reason: str


@dataclass(frozen=True, slots=True)
class OptimizationStatistics:
    """Report computed once per optimization call."""

    original_distance_km: float = 0.0
    optimized_distance_km: float = 0.0
    saved_distance_km: float = 0.0
    saved_percentage: float = 0.0
    backtracking_eliminated: int = 0
    zones_created: int = 0
    execution_time_ms: float = 0.0
    strategy: Optional[str] = None
    fallback_used: bool = False
    original_score: float = 0.0
    optimized_score: float = 0.0

    @classmethod
    def empty(cls) -> "OptimizationStatistics":
        return cls()


@dataclass(slots=True)
class OptimizationResult:
    route: list[Stop]
    statistics: OptimizationStatistics
    config: "OptimizerConfig"
    analysis: Optional[RouteAnalysis] = None

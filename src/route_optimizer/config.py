"""Application configuration and settings management."""

from typing import Any, Mapping

import json
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="ROUTE_OPTIMIZER_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Courier Route Optimizer API"
    api_prefix: str = "/api"
    log_level: str = Field(default="INFO", description="Root log level for the service.")
    optimization_time_budget_seconds: float = Field(
        default=10.0,
        gt=0.0,
        description="Wall-clock budget for one optimization call before falling back to the input order.",
    )

    # Optimizer defaults (distances in km)
    immediate_delivery_radius: float = Field(default=1.5, ge=0.0)
    cluster_radius: float = Field(default=2.0, ge=0.0)
    zone_radius: float = Field(default=3.0, ge=0.0)
    distance_weight: float = Field(default=1.0, ge=0.0)
    backtrack_penalty: float = Field(default=5.0, ge=0.0)
    direction_changes_penalty: float = Field(default=2.0, ge=0.0)
    cluster_bonus: float = Field(default=0.7, ge=0.0)
    enable_zoning: bool = True
    enable_smart_pairing: bool = True
    max_lookahead: int = Field(default=3, ge=1)
    max_iterations: int = Field(default=1000, ge=1)
    convergence_threshold: float = Field(default=0.01, ge=0.0)

    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ),
        description="Permitted web origins for browser clients (CORS).",
    )

    @field_validator("frontend_allowed_origins", mode="before")
    @classmethod
    def _parse_str_tuple_from_env(cls, value: Any) -> tuple[str, ...]:
        """Parse string tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(str(item) for item in parsed)
            except (json.JSONDecodeError, TypeError):
                pass
            if "," in value:
                return tuple(item.strip() for item in value.split(",") if item.strip())
            if value.strip():
                return (value.strip(),)
        return tuple()


settings = Settings()


class OptimizerConfig(BaseModel):
    """Immutable tunables for a single optimization call.

    Fields accept both their snake_case names and the camelCase option names
    used by dispatch clients (``immediateDeliveryRadius``, ``clusterRadius``...).
    ``zone_radius``, ``cluster_bonus`` and ``max_lookahead`` are validated and
    carried but not read by any heuristic yet. Unknown option names are
    rejected so a misspelled override cannot be silently ignored.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    immediate_delivery_radius: float = Field(default=1.5, ge=0.0, alias="immediateDeliveryRadius")
    cluster_radius: float = Field(default=2.0, ge=0.0, alias="clusterRadius")
    zone_radius: float = Field(default=3.0, ge=0.0, alias="zoneRadius")
    distance_weight: float = Field(default=1.0, ge=0.0, alias="distanceWeight")
    backtrack_penalty: float = Field(default=5.0, ge=0.0, alias="backtrackPenalty")
    direction_changes_penalty: float = Field(default=2.0, ge=0.0, alias="directionChangesPenalty")
    cluster_bonus: float = Field(default=0.7, ge=0.0, alias="clusterBonus")
    enable_zoning: bool = Field(default=True, alias="enableZoning")
    enable_smart_pairing: bool = Field(default=True, alias="enableSmartPairing")
    max_lookahead: int = Field(default=3, ge=1, alias="maxLookahead")
    max_iterations: int = Field(default=1000, ge=1, alias="maxIterations")
    convergence_threshold: float = Field(default=0.01, ge=0.0, alias="convergenceThreshold")

    @classmethod
    def from_settings(cls, source: Settings | None = None) -> "OptimizerConfig":
        source = source or settings
        return cls(**{name: getattr(source, name) for name in cls.model_fields})

    def merged(self, overrides: Mapping[str, Any] | None = None, **kwargs: Any) -> "OptimizerConfig":
        """Return a new config with ``overrides`` applied on top of this one."""
        updates = {**dict(overrides or {}), **kwargs}
        if not updates:
            return self
        aliases = {field.alias: name for name, field in type(self).model_fields.items() if field.alias}
        data = self.model_dump()
        for key, value in updates.items():
            data[aliases.get(key, key)] = value
        return type(self).model_validate(data)

    def as_options(self) -> dict[str, Any]:
        """Serialize using the camelCase option names."""
        return self.model_dump(by_alias=True)

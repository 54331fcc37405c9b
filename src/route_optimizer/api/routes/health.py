"""Health endpoints."""

from __future__ import annotations

from fastapi import APIRouter, status

from ...config import OptimizerConfig

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Simple health check endpoint that doesn't require any dependencies."""
    return {"status": "ok"}


@router.get("/health/config", status_code=status.HTTP_200_OK)
def health_config() -> dict:
    """Default optimizer options applied when a request sends none."""
    return {"status": "ok", "defaults": OptimizerConfig.from_settings().as_options()}

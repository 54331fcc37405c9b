"""Routing endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, status
from fastapi.responses import PlainTextResponse

from ...schemas.routing import OptimizeRequest, OptimizeResponse
from ...services.outputs.routing_formatter import optimization_result_to_csv
from ...services.routing.service import optimize_stops, run_optimization

router = APIRouter(prefix="/routes", tags=["routes"])


@router.post("/optimize", response_model=OptimizeResponse, status_code=status.HTTP_200_OK)
def optimize(payload: OptimizeRequest) -> OptimizeResponse:
    try:
        return optimize_stops(payload)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except Exception as exc:
        logging.exception(f"Error optimizing route: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to optimize route: {str(exc)}"
        ) from exc


@router.post("/optimize/csv", response_class=PlainTextResponse, status_code=status.HTTP_200_OK)
def optimize_csv(payload: OptimizeRequest) -> PlainTextResponse:
    """Optimized stop sequence as a CSV manifest."""
    try:
        result = run_optimization(payload)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except Exception as exc:
        logging.exception(f"Error exporting optimized route: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to export route: {str(exc)}"
        ) from exc
    return PlainTextResponse(
        optimization_result_to_csv(result),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="optimized_route.csv"'},
    )

"""
app/routes/admin.py – operational introspection (admin role only).
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.dependencies import get_error_metrics, get_response_cache, require_role
from app.errors import ErrorMetrics
from app.models import ApiResponse
from app.services.cache import InvalidPatternError, ResponseCache

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/admin",
    tags=["Admin"],
    dependencies=[Depends(require_role("admin"))],
)


@router.get("/cache/stats", response_model=ApiResponse, summary="Response cache statistics")
async def cache_stats(cache: ResponseCache = Depends(get_response_cache)) -> ApiResponse:
    return ApiResponse(data=cache.stats())


@router.delete("/cache", response_model=ApiResponse, summary="Clear the response cache")
async def clear_cache(
    pattern: Optional[str] = Query(default=None, description="Regex matched against cache keys."),
    cache: ResponseCache = Depends(get_response_cache),
) -> ApiResponse:
    try:
        removed = cache.clear(pattern)
    except InvalidPatternError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    logger.info("Response cache cleared", extra={"pattern": pattern, "removed": removed})
    return ApiResponse(message=f"Removed {removed} cache entries", data={"removed": removed})


@router.get("/errors", response_model=ApiResponse, summary="Recent error metrics")
async def error_metrics(metrics: ErrorMetrics = Depends(get_error_metrics)) -> ApiResponse:
    return ApiResponse(data=metrics.snapshot())

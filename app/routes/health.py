"""
app/routes/health.py – liveness and detailed health endpoints.

Both endpoints sit behind the response cache (see ``cache_paths``), so a
repeated probe within the TTL is answered with ``X-Cache: HIT``.
"""
from __future__ import annotations

import logging
import os
import platform
import sys
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Request

from app.config import settings
from app.models import ApiResponse, DetailedHealth, HealthResponse
from app.services.cache import process_memory_usage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/health", tags=["Health"])


def _uptime(request: Request) -> float:
    started = getattr(request.app.state, "started_at", None)
    return round(time.monotonic() - started, 3) if started is not None else 0.0


@router.get(
    "",
    response_model=HealthResponse,
    summary="Liveness probe",
    description="Returns 200 as long as the application process is running.",
)
async def health(request: Request) -> HealthResponse:
    return HealthResponse(
        message=f"{settings.app_name} is running",
        timestamp=datetime.now(timezone.utc).isoformat(),
        uptime=_uptime(request),
        environment=settings.environment,
        version=settings.app_version,
    )


@router.get(
    "/detailed",
    response_model=ApiResponse,
    summary="Detailed health check",
    description="Process memory, CPU times and runtime details.",
)
async def health_detailed(request: Request) -> ApiResponse:
    times = os.times()
    details = DetailedHealth(
        message="OK",
        timestamp=datetime.now(timezone.utc).isoformat(),
        uptime=_uptime(request),
        environment=settings.environment,
        memory=process_memory_usage(),
        cpu={"user_seconds": times.user, "system_seconds": times.system},
        python_version=sys.version.split()[0],
        platform=platform.platform(),
        gemini_key_configured=bool(settings.gemini_api_key),
    )
    return ApiResponse(data=details.model_dump())

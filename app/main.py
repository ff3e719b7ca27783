"""
app/main.py – FastAPI application factory for the Creative Suite API.

Features
────────
• Structured logging via structlog
• Request-ID middleware (X-Request-ID header) with slow-request warnings
• Rate limiting (slowapi; stricter per-route limits on AI and auth routes)
• In-memory response cache with TTL for public GET endpoints
• JWT-protected AI, media, user and admin routers
• Clean startup/shutdown lifecycle (cache sweeper task)
"""
from __future__ import annotations

import asyncio
import contextlib
import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from slowapi.middleware import SlowAPIMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from app.config import settings
from app.errors import ErrorMetrics, register_exception_handlers
from app.middleware.cache import ResponseCacheMiddleware
from app.middleware.performance import ApiVersionMiddleware, RequestSizeLimitMiddleware
from app.ratelimit import limiter
from app.routes.admin import router as admin_router
from app.routes.ai import router as ai_router
from app.routes.auth import router as auth_router
from app.routes.health import router as health_router
from app.routes.media import router as media_router
from app.routes.user import router as user_router
from app.services.cache import ResponseCache, sweep_periodically
from app.services.storage import MediaStorage
from app.services.usage import UsageTracker

# ── Logging setup ─────────────────────────────────────────────────────────────


def _configure_logging() -> None:
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.dev.ConsoleRenderer()
            if settings.debug
            else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, settings.log_level.upper(), logging.INFO)
        ),
        logger_factory=structlog.PrintLoggerFactory(),
    )
    # Also configure standard logging to go through structlog
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
    )


_configure_logging()
logger = structlog.get_logger(__name__)

# ── Request-ID middleware ─────────────────────────────────────────────────────


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Attaches a unique request ID to each incoming request.
    Reads X-Request-ID from the client if present, otherwise generates one.
    Echoes the request ID and the handling time in the response headers.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        structlog.contextvars.bind_contextvars(request_id=request_id)

        start = time.perf_counter()
        response: Response = await call_next(request)
        duration_ms = round((time.perf_counter() - start) * 1000, 1)

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time-Ms"] = str(duration_ms)

        fields = dict(
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=duration_ms,
            user_agent=request.headers.get("user-agent"),
            client=request.client.host if request.client else None,
        )
        if response.status_code >= 500:
            logger.error("request failed", **fields)
        elif response.status_code >= 400:
            logger.warning("request rejected", **fields)
        else:
            logger.info("request completed", **fields)
        if duration_ms > settings.slow_request_ms:
            logger.warning("slow request detected", **fields)

        structlog.contextvars.clear_contextvars()
        return response


# ── Lifespan ──────────────────────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    logger.info(
        "Creative Suite API starting",
        name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
        cors_origins=settings.cors_origin_list,
    )
    sweeper = asyncio.create_task(
        sweep_periodically(app.state.response_cache, settings.cache_sweep_interval_seconds)
    )
    yield
    sweeper.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await sweeper
    logger.info("Creative Suite API shutting down")


# ── Application factory ───────────────────────────────────────────────────────


def create_app(
    *,
    response_cache: Optional[ResponseCache] = None,
    media_storage: Optional[MediaStorage] = None,
) -> FastAPI:
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description=(
            "**Creative Suite API** – generative text, image, video and audio "
            "endpoints backed by Google Gemini.\n\n"
            "Public `GET` endpoints are served from an in-memory response cache; "
            "look for the `X-Cache` / `X-Cache-Age` headers."
        ),
        openapi_tags=[
            {"name": "Health", "description": "Liveness and detailed health probes."},
            {"name": "Auth", "description": "Registration, login and JWT lifecycle."},
            {"name": "AI", "description": "Generative AI endpoints."},
            {"name": "Media", "description": "Media upload and retrieval."},
            {"name": "User", "description": "Profile and usage."},
            {"name": "Admin", "description": "Cache and error introspection."},
        ],
        license_info={"name": "Proprietary"},
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # ── Per-process collaborators ─────────────────────────────────────────────
    cache = response_cache
    if cache is None:
        cache = ResponseCache(max_entries=settings.cache_max_entries or None)
    app.state.response_cache = cache
    if media_storage is None:
        media_storage = MediaStorage(settings.upload_dir, settings.max_file_size)
    app.state.media_storage = media_storage
    app.state.usage = UsageTracker()
    app.state.error_metrics = ErrorMetrics()
    app.state.started_at = time.monotonic()

    # ── Middleware (order matters – last added is outermost) ──────────────────
    app.add_middleware(
        ResponseCacheMiddleware,
        cache=cache,
        ttl_seconds=settings.cache_ttl_seconds,
        path_prefixes=settings.cache_path_list,
    )
    app.add_middleware(ApiVersionMiddleware, version=settings.api_version)
    app.add_middleware(RequestSizeLimitMiddleware, max_size=settings.max_request_size)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-API-Key", "X-Request-ID"],
        max_age=settings.cors_max_age,
    )
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(SlowAPIMiddleware)

    # ── Error handlers ────────────────────────────────────────────────────────
    app.state.limiter = limiter
    register_exception_handlers(app)

    # ── Routers ───────────────────────────────────────────────────────────────
    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(ai_router)
    app.include_router(user_router)
    app.include_router(media_router)
    app.include_router(admin_router)

    return app


app = create_app()

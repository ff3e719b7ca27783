"""
app/errors.py – JSON error envelopes and error metrics.

Every error response has the shape::

    {"success": false, "error": "<title>", "message": "...",
     "error_id": "err_...", "timestamp": "<iso8601>"}
"""
from __future__ import annotations

import logging
import secrets
import threading
import time
from collections import Counter, deque
from datetime import datetime, timezone
from http import HTTPStatus
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import settings

logger = logging.getLogger(__name__)

RECENT_ERRORS_KEPT = 100


# ── Metrics ───────────────────────────────────────────────────────────────────


class ErrorMetrics:
    """Counts errors by status and type; keeps the most recent ones."""

    def __init__(self, keep: int = RECENT_ERRORS_KEPT) -> None:
        self._lock = threading.Lock()
        self.total = 0
        self.by_status: Counter[int] = Counter()
        self.by_type: Counter[str] = Counter()
        self.recent: deque[dict[str, Any]] = deque(maxlen=keep)

    def record(self, request: Request, status_code: int, error_type: str, message: str) -> None:
        with self._lock:
            self.total += 1
            self.by_status[status_code] += 1
            self.by_type[error_type] += 1
            self.recent.append(
                {
                    "timestamp": _now_iso(),
                    "status": status_code,
                    "type": error_type,
                    "message": message,
                    "url": str(request.url.path),
                    "method": request.method,
                }
            )

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            return {
                "total": self.total,
                "by_status": {str(k): v for k, v in self.by_status.items()},
                "by_type": dict(self.by_type),
                "recent": list(self.recent),
            }


# ── Helpers ───────────────────────────────────────────────────────────────────


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _error_id(prefix: str = "err") -> str:
    return f"{prefix}_{int(time.time() * 1000)}_{secrets.token_hex(5)}"


def _title(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Error"


def _record(request: Request, status_code: int, error_type: str, message: str) -> None:
    metrics: ErrorMetrics | None = getattr(request.app.state, "error_metrics", None)
    if metrics is not None:
        metrics.record(request, status_code, error_type, message)


def error_body(status_code: int, message: str, error_id: str, **extra: Any) -> dict[str, Any]:
    return {
        "success": False,
        "error": _title(status_code),
        "message": message,
        "error_id": error_id,
        "timestamp": _now_iso(),
        **extra,
    }


def available_endpoints(app: FastAPI) -> list[str]:
    endpoints = []
    for route in app.routes:
        if isinstance(route, APIRoute) and route.include_in_schema:
            for method in sorted(route.methods):
                endpoints.append(f"{method} {route.path}")
    return endpoints


# ── Handlers ──────────────────────────────────────────────────────────────────


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    status_code = exc.status_code
    message = exc.detail if isinstance(exc.detail, str) else _title(status_code)
    extra: dict[str, Any] = {}

    if status_code == 404:
        error_id = _error_id("404")
        if message == _title(404):
            message = f"Route {request.method} {request.url.path} not found"
            extra["available_endpoints"] = available_endpoints(request.app)
        logger.warning(
            "Not found",
            extra={"error_id": error_id, "method": request.method, "path": request.url.path},
        )
    else:
        error_id = _error_id()
        log = logger.error if status_code >= 500 else logger.warning
        log(
            "HTTP error",
            extra={"error_id": error_id, "status": status_code, "error_message": message},
        )

    _record(request, status_code, type(exc).__name__, message)
    return JSONResponse(
        status_code=status_code,
        content=error_body(status_code, message, error_id, **extra),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    error_id = _error_id()
    details = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in exc.errors()
    ]
    message = "; ".join(f"{'.'.join(str(p) for p in d['loc'])}: {d['msg']}" for d in details)
    _record(request, 422, "ValidationError", message)
    body = error_body(422, message or "Request validation failed", error_id, details=details)
    body["error"] = "Validation Error"
    return JSONResponse(status_code=422, content=body)


def rate_limit_exception_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    error_id = _error_id()
    _record(request, 429, "RateLimitExceeded", str(exc.detail))
    body = error_body(
        429,
        "Too many requests. Please try again later.",
        error_id,
        limit=str(exc.detail),
        retry_after=60,
    )
    return JSONResponse(status_code=429, content=body, headers={"Retry-After": "60"})


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    error_id = _error_id()
    logger.exception(
        "Unhandled error",
        extra={"error_id": error_id, "method": request.method, "path": request.url.path},
    )
    _record(request, 500, type(exc).__name__, str(exc))

    if settings.is_production:
        message = "Something went wrong. Please try again or contact support."
        extra = {
            "support_message": f"If this error persists, please contact support with error ID: {error_id}"
        }
    else:
        message = str(exc) or "Internal Server Error"
        extra = {"exception_type": type(exc).__name__}
    return JSONResponse(status_code=500, content=error_body(500, message, error_id, **extra))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

"""
app/middleware/performance.py – request size guard and API version headers.
"""
from __future__ import annotations

import logging

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

logger = logging.getLogger(__name__)


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Reject requests whose declared Content-Length exceeds ``max_size`` bytes."""

    def __init__(self, app: ASGIApp, *, max_size: int) -> None:
        super().__init__(app)
        self.max_size = max_size

    async def dispatch(self, request: Request, call_next) -> Response:
        declared = request.headers.get("content-length")
        if declared and declared.isdigit() and int(declared) > self.max_size:
            logger.warning(
                "Request too large",
                extra={"path": request.url.path, "content_length": int(declared)},
            )
            return JSONResponse(
                status_code=413,
                content={
                    "success": False,
                    "error": "Request Too Large",
                    "message": f"Request size {declared} bytes exceeds limit of {self.max_size} bytes",
                    "max_size": self.max_size,
                },
            )
        return await call_next(request)


class ApiVersionMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, *, version: str) -> None:
        super().__init__(app)
        self.version = version

    async def dispatch(self, request: Request, call_next) -> Response:
        response: Response = await call_next(request)
        response.headers["API-Version"] = self.version
        response.headers["X-API-Version"] = self.version
        return response

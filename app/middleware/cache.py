"""
app/middleware/cache.py – serve repeated GET requests from the ResponseCache.

Hit  → stored body, ``X-Cache: HIT`` and ``X-Cache-Age: <seconds>``.
Miss → the route runs; a 2xx JSON response is stored and tagged ``X-Cache: MISS``.
Anything else (errors, non-JSON bodies, raised exceptions) passes through
without touching the cache.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from app.services.cache import ResponseCache, default_cache_key, normalize_path

logger = logging.getLogger(__name__)

KeyFunc = Callable[[Request], str]
Condition = Callable[[Request], bool]


@dataclass(frozen=True)
class CachedResponse:
    body: bytes
    status_code: int
    media_type: str


def request_cache_key(request: Request) -> str:
    query: dict[str, object] = {}
    for name in request.query_params:
        values = request.query_params.getlist(name)
        query[name] = values[0] if len(values) == 1 else values
    return default_cache_key(request.method, request.url.path, query)


def only_get_requests(request: Request) -> bool:
    return request.method == "GET"


class ResponseCacheMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app: ASGIApp,
        *,
        cache: ResponseCache,
        ttl_seconds: float,
        path_prefixes: Iterable[str] = (),
        key_func: Optional[KeyFunc] = None,
        condition: Optional[Condition] = None,
    ) -> None:
        super().__init__(app)
        self.cache = cache
        self.ttl_seconds = ttl_seconds
        self.path_prefixes = tuple(normalize_path(p) for p in path_prefixes)
        self.key_func = key_func or request_cache_key
        self.condition = condition or only_get_requests

    def _applies_to(self, request: Request) -> bool:
        path = normalize_path(request.url.path)
        if not any(path == p or path.startswith(p + "/") for p in self.path_prefixes):
            return False
        return self.condition(request)

    async def dispatch(self, request: Request, call_next) -> Response:
        if not self._applies_to(request):
            return await call_next(request)

        key = self.key_func(request)
        hit = self.cache.lookup(key)
        if hit is not None:
            cached: CachedResponse = hit.value
            age = int(hit.age_seconds)
            logger.info("Cache hit", extra={"key": key, "age": age})
            return Response(
                content=cached.body,
                status_code=cached.status_code,
                media_type=cached.media_type,
                headers={"X-Cache": "HIT", "X-Cache-Age": str(age)},
            )

        response: Response = await call_next(request)
        media_type = response.headers.get("content-type", "")
        if not (200 <= response.status_code < 300 and media_type.startswith("application/json")):
            return response

        body = b"".join([chunk async for chunk in response.body_iterator])
        self.cache.set(
            key,
            CachedResponse(body=body, status_code=response.status_code, media_type=media_type),
            self.ttl_seconds,
        )
        logger.info("Cached response", extra={"key": key, "ttl": self.ttl_seconds})

        headers = {k: v for k, v in response.headers.items() if k.lower() != "content-length"}
        headers["X-Cache"] = "MISS"
        return Response(
            content=body,
            status_code=response.status_code,
            headers=headers,
            media_type=media_type,
        )

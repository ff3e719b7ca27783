"""
app/ratelimit.py – shared slowapi limiter (per client IP).

The global default applies to every route through SlowAPIMiddleware; AI and
auth routes add stricter per-route limits with ``@limiter.limit``.
"""
from __future__ import annotations

from slowapi import Limiter
from slowapi.util import get_remote_address

from app.config import settings

AI_LIMIT = f"{settings.ai_rate_limit_per_minute}/minute"
AUTH_LIMIT = f"{settings.auth_rate_limit_per_window} per 15 minutes"

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[f"{settings.rate_limit_per_minute}/minute"],
    enabled=settings.rate_limit_enabled,
)

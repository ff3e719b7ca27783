"""
app/dependencies.py – FastAPI dependencies shared by the routers.

Per-process collaborators (response cache, usage tracker, media storage, error
metrics) live on ``app.state`` and are created in ``create_app()``; these
helpers hand them to route functions.
"""
from __future__ import annotations

import logging
from typing import Callable, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.errors import ErrorMetrics
from app.services.cache import ResponseCache
from app.services.storage import MediaStorage
from app.services.tokens import (
    InvalidTokenError,
    TokenExpiredError,
    TokenService,
    TokenUser,
    get_token_service,
)
from app.services.usage import UsageTracker

logger = logging.getLogger(__name__)

_bearer = HTTPBearer(auto_error=False)


def get_response_cache(request: Request) -> ResponseCache:
    return request.app.state.response_cache


def get_usage_tracker(request: Request) -> UsageTracker:
    return request.app.state.usage


def get_media_storage(request: Request) -> MediaStorage:
    return request.app.state.media_storage


def get_error_metrics(request: Request) -> ErrorMetrics:
    return request.app.state.error_metrics


# ── Authentication ────────────────────────────────────────────────────────────


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    tokens: TokenService = Depends(get_token_service),
) -> TokenUser:
    """Resolve the bearer token into a user; 401 when missing/expired, 403 when invalid."""
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No authentication token provided",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        user = tokens.verify_access(credentials.credentials)
    except TokenExpiredError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication token has expired",
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc
    except InvalidTokenError as exc:
        client = request.client.host if request.client else "unknown"
        logger.warning("Invalid token attempt", extra={"client": client})
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Authentication token is invalid",
        ) from exc

    request.state.user = user
    return user


def require_role(*roles: str) -> Callable[..., TokenUser]:
    """Dependency factory: the current user must hold one of ``roles``."""

    async def _check(user: TokenUser = Depends(get_current_user)) -> TokenUser:
        if user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You do not have permission to access this resource",
            )
        return user

    return _check

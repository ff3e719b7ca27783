"""
app/routes/auth.py – registration, login and token lifecycle endpoints.

There is no user database: registration mints a fresh user id and login only
accepts the configured demo account. Tokens are stateless, so logout is a
client-side operation and the endpoint merely acknowledges it.
"""

import logging
import secrets
import time

from fastapi import APIRouter, Depends, HTTPException, Request, status

from app.config import settings
from app.dependencies import get_current_user
from app.models import ApiResponse, AuthData, LoginRequest, RefreshRequest, RegisterRequest, UserOut
from app.ratelimit import AUTH_LIMIT, limiter
from app.services.tokens import (
    InvalidTokenError,
    TokenExpiredError,
    TokenService,
    TokenUser,
    get_token_service,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])

DEMO_USER_ID = "user_demo_123"


def _role_for(email: str) -> str:
    return "admin" if email.lower() in settings.admin_email_list else "user"


@router.post(
    "/register",
    response_model=ApiResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new user",
)
@limiter.limit(AUTH_LIMIT)
async def register(
    request: Request,
    payload: RegisterRequest,
    tokens: TokenService = Depends(get_token_service),
) -> ApiResponse:
    user = TokenUser(
        id=f"user_{int(time.time() * 1000)}_{secrets.token_hex(6)}",
        email=payload.email,
        role=_role_for(payload.email),
    )
    pair = tokens.issue_pair(user)
    logger.info("New user registered", extra={"user_id": user.id})

    data = AuthData(
        user=UserOut(id=user.id, email=user.email, role=user.role, name=payload.name),
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
    )
    return ApiResponse(message="User registered successfully", data=data.model_dump())


@router.post("/login", response_model=ApiResponse, summary="Log in with email and password")
@limiter.limit(AUTH_LIMIT)
async def login(
    request: Request,
    payload: LoginRequest,
    tokens: TokenService = Depends(get_token_service),
) -> ApiResponse:
    email_ok = secrets.compare_digest(payload.email.lower(), settings.demo_user_email.lower())
    password_ok = secrets.compare_digest(payload.password, settings.demo_user_password)
    if not (email_ok and password_ok):
        logger.warning("Failed login attempt")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    user = TokenUser(id=DEMO_USER_ID, email=payload.email, role=_role_for(payload.email))
    pair = tokens.issue_pair(user)
    logger.info("User logged in", extra={"user_id": user.id})

    data = AuthData(
        user=UserOut(id=user.id, email=user.email, role=user.role, name="Demo User"),
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
    )
    return ApiResponse(message="Login successful", data=data.model_dump())


@router.post("/refresh", response_model=ApiResponse, summary="Exchange a refresh token")
async def refresh(
    payload: RefreshRequest,
    tokens: TokenService = Depends(get_token_service),
) -> ApiResponse:
    try:
        access_token = tokens.refresh_access(payload.refresh_token)
    except TokenExpiredError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Refresh token expired. Please log in again",
        ) from exc
    except InvalidTokenError as exc:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid refresh token. Please log in again",
        ) from exc

    return ApiResponse(message="Token refreshed successfully", data={"access_token": access_token})


@router.post("/logout", response_model=ApiResponse, summary="Log out (client discards tokens)")
async def logout(user: TokenUser = Depends(get_current_user)) -> ApiResponse:
    logger.info("User logged out", extra={"user_id": user.id})
    return ApiResponse(message="Logged out successfully")


@router.get("/verify", response_model=ApiResponse, summary="Check an access token")
async def verify(user: TokenUser = Depends(get_current_user)) -> ApiResponse:
    return ApiResponse(
        message="Token is valid",
        data={"user": UserOut(id=user.id, email=user.email, role=user.role).model_dump()},
    )

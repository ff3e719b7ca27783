"""
app/routes/user.py – profile and usage endpoints for the authenticated user.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from app.dependencies import get_current_user, get_usage_tracker
from app.models import ApiResponse, ProfileUpdateRequest, UserOut
from app.services.tokens import TokenUser
from app.services.usage import UsageTracker

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/user", tags=["User"])


@router.get("/profile", response_model=ApiResponse, summary="Current user's profile")
async def get_profile(user: TokenUser = Depends(get_current_user)) -> ApiResponse:
    return ApiResponse(data={"user": UserOut(id=user.id, email=user.email, role=user.role).model_dump()})


@router.put("/profile", response_model=ApiResponse, summary="Update the current user's profile")
async def update_profile(
    payload: ProfileUpdateRequest,
    user: TokenUser = Depends(get_current_user),
) -> ApiResponse:
    logger.info("User profile updated", extra={"user_id": user.id})
    return ApiResponse(
        message="Profile updated successfully",
        data={
            "user": {
                **UserOut(id=user.id, email=user.email, role=user.role, name=payload.name or "User").model_dump(),
                "preferences": payload.preferences,
                "updated_at": datetime.now(timezone.utc).isoformat(),
            }
        },
    )


@router.get("/usage", response_model=ApiResponse, summary="Generation usage counters")
async def get_usage(
    user: TokenUser = Depends(get_current_user),
    usage: UsageTracker = Depends(get_usage_tracker),
) -> ApiResponse:
    return ApiResponse(data=usage.snapshot(user.id))


@router.delete("/account", response_model=ApiResponse, summary="Request account deletion")
async def delete_account(
    user: TokenUser = Depends(get_current_user),
    usage: UsageTracker = Depends(get_usage_tracker),
) -> ApiResponse:
    usage.forget(user.id)
    logger.info("Account deletion requested", extra={"user_id": user.id})
    return ApiResponse(
        message="Account deletion request received. Your account will be deleted within 24 hours."
    )

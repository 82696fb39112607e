"""
trackd - Users Router

Current user's profile.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.dependencies import get_current_user
from app.models.user import User
from app.schemas.user import UserProfileUpdateRequest, UserResponse
from app.services.user_service import UserService


router = APIRouter()


@router.get(
    "/me",
    response_model=UserResponse,
    summary="Get current user",
)
async def get_me(current_user: User = Depends(get_current_user)):
    return current_user


@router.put(
    "/me/profile",
    response_model=UserResponse,
    summary="Update profile",
    description="Partial update of business details, goals, currency and notification preferences.",
)
async def update_profile(
    request: UserProfileUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    return await UserService(db).update_profile(current_user, request)

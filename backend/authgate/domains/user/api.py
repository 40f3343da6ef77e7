"""User API routes - 公开资料查询与本人资料更新"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from authgate.common.database import get_session
from authgate.common.exceptions import NotFound, PreconditionFailed
from authgate.domains.auth.deps import get_current_user
from authgate.domains.user.models import User
from authgate.domains.user.schemas import UserProfile, UserResponse, UserUpdate
from authgate.domains.user.service import user_service

router = APIRouter()


@router.get("/find", response_model=UserResponse)
async def find_user(
    username: Optional[str] = Query(None),
    email: Optional[str] = Query(None),
    session: AsyncSession = Depends(get_session),
):
    """Look up a profile by username or email."""
    if not username and not email:
        raise PreconditionFailed("Username or email is required")
    profile = await user_service.find_profile(session, username=username, email=email)
    if profile is None:
        raise NotFound("User not found")
    return UserResponse(user=profile)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: str, session: AsyncSession = Depends(get_session)):
    profile = await user_service.get_profile(session, user_id)
    if profile is None:
        raise NotFound("User not found")
    return UserResponse(user=profile)


@router.put("/{user_id}", response_model=UserProfile)
async def update_user(
    user_id: str,
    data: UserUpdate,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await user_service.update_profile(session, current_user.id, user_id, data)


@router.delete("/{user_id}")
async def deactivate_user(
    user_id: str,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """停用本人账号 (软删除，可由管理员恢复)"""
    await user_service.deactivate_own_account(session, current_user.id, user_id)
    return {"message": "User account deactivated successfully"}

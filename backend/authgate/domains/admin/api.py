"""
Admin domain API routes - FastAPI路由
"""

import uuid
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from authgate.common.database import get_session
from authgate.domains.admin import schemas
from authgate.domains.admin.deps import get_current_admin
from authgate.domains.admin.models import Admin
from authgate.domains.admin.service import AdminService, get_admin_service
from authgate.domains.auth.service import AuthService, get_auth_service
from authgate.domains.user.schemas import (
    AdminUserView,
    UserListQuery,
    UserListResponse,
    UserSummary,
)

router = APIRouter()


# ============================================================================
# Admin accounts
# ============================================================================


@router.post("/login", response_model=schemas.AdminLoginResponse, summary="管理员登录")
async def admin_login(
    data: schemas.AdminLoginRequest,
    session: AsyncSession = Depends(get_session),
    admin_service: AdminService = Depends(get_admin_service),
):
    return await admin_service.login(session, data.username, data.password)


@router.post(
    "/create",
    response_model=schemas.AdminProfile,
    status_code=status.HTTP_201_CREATED,
    summary="创建管理员",
)
async def create_admin(
    data: schemas.CreateAdminRequest,
    current_admin: Admin = Depends(get_current_admin),
    session: AsyncSession = Depends(get_session),
    admin_service: AdminService = Depends(get_admin_service),
):
    """
    创建管理员 (仅超级管理员)

    - **role**: 0 = 超级管理员, 1 = 管理员
    """
    admin = await admin_service.create_admin(session, current_admin, data)
    return schemas.AdminProfile.model_validate(admin)


@router.get("/list", response_model=schemas.AdminListResponse, summary="管理员列表")
async def list_admins(
    current_admin: Admin = Depends(get_current_admin),
    session: AsyncSession = Depends(get_session),
    admin_service: AdminService = Depends(get_admin_service),
):
    admins = await admin_service.list_admins(session, current_admin)
    return schemas.AdminListResponse(
        admins=[schemas.AdminProfile.model_validate(a) for a in admins]
    )


@router.get("/me", response_model=schemas.AdminProfile, summary="当前管理员")
async def get_admin_me(current_admin: Admin = Depends(get_current_admin)):
    return schemas.AdminProfile.model_validate(current_admin)


# ============================================================================
# User management
# ============================================================================


@router.get("/users", response_model=UserListResponse, summary="用户列表")
async def list_users(
    page: int = Query(1),
    limit: int = Query(10),
    verified: Optional[bool] = Query(None),
    active: Optional[bool] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    search_field: Literal["username", "email", "full_name", "college", "all"] = Query("all"),
    sort_by: Literal[
        "username", "email", "full_name", "created_at", "is_verified", "is_active"
    ] = Query("created_at"),
    sort_order: Literal["asc", "desc", "ASC", "DESC"] = Query("desc"),
    current_admin: Admin = Depends(get_current_admin),
    session: AsyncSession = Depends(get_session),
    auth_service: AuthService = Depends(get_auth_service),
):
    """
    列出所有用户 (含已停用账号)

    - **page**: 页码, 小于1按1处理
    - **limit**: 每页数量, 限制在 1-100
    """
    query = UserListQuery(
        page=page,
        limit=limit,
        verified=verified,
        active=active,
        search=search,
        search_field=search_field,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return await auth_service.list_users(session, query)


@router.get("/users/{user_id}", response_model=AdminUserView, summary="用户详情")
async def get_user_details(
    user_id: uuid.UUID,
    current_admin: Admin = Depends(get_current_admin),
    session: AsyncSession = Depends(get_session),
    auth_service: AuthService = Depends(get_auth_service),
):
    return await auth_service.get_user_details(session, str(user_id))


@router.patch("/users/{user_id}/deactivate", response_model=UserSummary, summary="停用用户")
async def deactivate_user(
    user_id: uuid.UUID,
    data: Optional[schemas.UserStatusChangeRequest] = None,
    current_admin: Admin = Depends(get_current_admin),
    session: AsyncSession = Depends(get_session),
    auth_service: AuthService = Depends(get_auth_service),
):
    return await auth_service.deactivate_user(
        session, str(user_id), current_admin.id, data.reason if data else None
    )


@router.patch("/users/{user_id}/reactivate", response_model=UserSummary, summary="恢复用户")
async def reactivate_user(
    user_id: uuid.UUID,
    data: Optional[schemas.UserStatusChangeRequest] = None,
    current_admin: Admin = Depends(get_current_admin),
    session: AsyncSession = Depends(get_session),
    auth_service: AuthService = Depends(get_auth_service),
):
    return await auth_service.reactivate_user(
        session, str(user_id), current_admin.id, data.reason if data else None
    )

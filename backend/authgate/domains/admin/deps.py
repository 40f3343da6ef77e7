"""Admin authentication dependencies."""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from authgate.common.database import get_session
from authgate.domains.admin.models import Admin
from authgate.domains.admin.service import AdminService, get_admin_service
from authgate.domains.auth.deps import require_bearer_token


async def get_current_admin(
    token: str = Depends(require_bearer_token),
    session: AsyncSession = Depends(get_session),
    admin_service: AdminService = Depends(get_admin_service),
) -> Admin:
    return await admin_service.authenticate(session, token)


async def get_current_super_admin(
    admin: Admin = Depends(get_current_admin),
) -> Admin:
    return AdminService.require_super_admin(admin)

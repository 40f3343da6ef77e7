"""
Admin domain repository - 数据访问层
"""

import logging
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from authgate.common.exceptions import AlreadyExists
from authgate.domains.admin.models import Admin, AuditLog

logger = logging.getLogger(__name__)


class AdminRepository:

    async def get_by_id(self, session: AsyncSession, admin_id: str) -> Optional[Admin]:
        result = await session.execute(select(Admin).where(Admin.id == admin_id))
        return result.scalar_one_or_none()

    async def get_by_username(self, session: AsyncSession, username: str) -> Optional[Admin]:
        stmt = select(Admin).where(Admin.username == username.strip().lower())
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def create(self, session: AsyncSession, admin: Admin) -> Admin:
        session.add(admin)
        try:
            await session.flush()
        except IntegrityError as e:
            await session.rollback()
            raise AlreadyExists("Username already taken") from e
        await session.refresh(admin)
        return admin

    async def list_all(self, session: AsyncSession) -> List[Admin]:
        result = await session.execute(select(Admin).order_by(Admin.created_at.asc()))
        return list(result.scalars().all())

    async def count_all(self, session: AsyncSession) -> int:
        result = await session.execute(select(func.count()).select_from(Admin))
        return int(result.scalar_one())


class AuditLogRepository:

    async def create(self, session: AsyncSession, entry: AuditLog) -> AuditLog:
        session.add(entry)
        await session.flush()
        return entry

    async def list_for_resource(
        self, session: AsyncSession, resource_type: str, resource_id: str
    ) -> List[AuditLog]:
        stmt = (
            select(AuditLog)
            .where(AuditLog.resource_type == resource_type, AuditLog.resource_id == resource_id)
            .order_by(AuditLog.created_at.asc())
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())


admin_repository = AdminRepository()
audit_log_repository = AuditLogRepository()

"""
Admin domain service - 管理员登录、角色校验与引导
"""

import logging
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from authgate.common.exceptions import (
    AlreadyExists,
    Forbidden,
    InvalidCredentials,
    InvalidToken,
)
from authgate.domains.admin.models import Admin, AdminRole, AuditLog
from authgate.domains.admin.repository import admin_repository, audit_log_repository
from authgate.domains.admin.schemas import AdminLoginResponse, CreateAdminRequest
from authgate.domains.auth.jwt import TOKEN_TYPE_ADMIN, TokenIssuer, get_token_issuer
from authgate.domains.auth.passwords import PasswordHasher, get_password_hasher

logger = logging.getLogger(__name__)


class AdminService:
    """管理员服务

    Admin tokens carry the role, but every authenticated call re-reads the
    admin row so a role change or removal takes effect immediately.
    """

    def __init__(
        self,
        repository=None,
        token_issuer: Optional[TokenIssuer] = None,
        hasher: Optional[PasswordHasher] = None,
        audit_repository=None,
    ):
        self.repository = repository or admin_repository
        self.token_issuer = token_issuer or get_token_issuer()
        self.hasher = hasher or get_password_hasher()
        self.audit_repository = audit_repository or audit_log_repository

    async def login(self, session: AsyncSession, username: str, password: str) -> AdminLoginResponse:
        admin = await self.repository.get_by_username(session, username)
        if admin is None or not self.hasher.verify(password, admin.password_hash):
            logger.info("Admin login failed")
            raise InvalidCredentials()

        token = self.token_issuer.issue({
            "sub": admin.id,
            "username": admin.username,
            "role": int(admin.role),
            "typ": TOKEN_TYPE_ADMIN,
        })
        logger.info(f"Admin logged in: {admin.username}")
        return AdminLoginResponse(access_token=token, role=int(admin.role))

    async def authenticate(self, session: AsyncSession, token: str) -> Admin:
        payload = self.token_issuer.verify(token, token_type=TOKEN_TYPE_ADMIN)
        admin = await self.repository.get_by_id(session, payload["sub"])
        if admin is None:
            raise InvalidToken()
        return admin

    @staticmethod
    def require_super_admin(admin: Admin) -> Admin:
        if not admin.is_super_admin:
            raise Forbidden("Super admin privileges required")
        return admin

    async def create_admin(
        self, session: AsyncSession, acting_admin: Admin, payload: CreateAdminRequest
    ) -> Admin:
        self.require_super_admin(acting_admin)

        if await self.repository.get_by_username(session, payload.username):
            raise AlreadyExists("Username already taken")

        admin = await self.repository.create(session, Admin(
            name=payload.name,
            username=payload.username,
            password_hash=self.hasher.hash(payload.password),
            role=int(payload.role),
        ))
        await self.audit_repository.create(session, AuditLog(
            actor_id=acting_admin.id,
            action="admin.create",
            resource_type="admin",
            resource_id=admin.id,
            details={"username": admin.username, "role": int(admin.role)},
        ))
        logger.info(
            f"Admin created: {admin.username} (role={admin.role}) by {acting_admin.username}"
        )
        return admin

    async def list_admins(self, session: AsyncSession, acting_admin: Admin) -> List[Admin]:
        self.require_super_admin(acting_admin)
        return await self.repository.list_all(session)

    async def ensure_default_admin(
        self,
        session: AsyncSession,
        username: str,
        password: str,
        name: str = "Super Admin",
    ) -> Optional[Admin]:
        """Create one super admin when the table is empty; returns it, else None."""
        if await self.repository.count_all(session) > 0:
            return None

        admin = await self.repository.create(session, Admin(
            name=name,
            username=username,
            password_hash=self.hasher.hash(password),
            role=AdminRole.SUPER_ADMIN,
        ))
        logger.warning(
            f"Default super admin '{admin.username}' created. Change its password."
        )
        return admin


# ============================================================================
# Singleton
# ============================================================================

_admin_service: Optional[AdminService] = None


def get_admin_service() -> AdminService:
    global _admin_service
    if _admin_service is None:
        _admin_service = AdminService()
    return _admin_service

"""
Admin domain models - 管理员与审计日志
"""

import enum
from sqlalchemy import String, Integer, JSON, Index
from sqlalchemy.orm import Mapped, mapped_column, validates
from typing import Optional, Dict, Any

from authgate.common.base import Base, TimestampMixin, UUIDMixin


class AdminRole(enum.IntEnum):
    SUPER_ADMIN = 0
    ADMIN = 1


class Admin(Base, UUIDMixin, TimestampMixin):
    """
    管理员表
    独立于 users: 无注册步骤、无软删除
    """

    __tablename__ = "admins"

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    # 登录名 (小写, 唯一)
    username: Mapped[str] = mapped_column(String(50), nullable=False, unique=True, index=True)

    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    # 0 = super admin, 1 = admin
    role: Mapped[int] = mapped_column(Integer, nullable=False, default=AdminRole.ADMIN)

    @validates("username")
    def _normalize_username(self, key, value):
        return value.strip().lower() if value is not None else value

    @property
    def is_super_admin(self) -> bool:
        return self.role == AdminRole.SUPER_ADMIN

    def __repr__(self):
        return f"<Admin(id={self.id}, username={self.username}, role={self.role})>"


class AuditLog(Base, UUIDMixin, TimestampMixin):
    """
    审计日志表
    记录管理员对用户账号的操作
    """

    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("idx_audit_logs_actor_action", "actor_id", "action"),
        Index("idx_audit_logs_created", "created_at"),
    )

    # 操作者ID (管理员)
    actor_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)

    # 操作类型 (user.deactivate, user.reactivate, admin.create)
    action: Mapped[str] = mapped_column(String(100), nullable=False)

    # 资源类型 (user, admin)
    resource_type: Mapped[str] = mapped_column(String(50), nullable=False)

    # 资源ID
    resource_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # 操作原因
    reason: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    # 操作详情
    details: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action={self.action}, resource_id={self.resource_id})>"

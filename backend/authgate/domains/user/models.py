"""User domain models for authentication and account lifecycle."""

from datetime import datetime
from typing import Optional
from sqlalchemy import String, Boolean, DateTime, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, validates
from authgate.common.base import Base, UUIDMixin, TimestampMixin


def normalize_identifier(value: Optional[str]) -> Optional[str]:
    """Lower-case and trim a username or email."""
    if value is None:
        return None
    return value.strip().lower()


class User(Base, UUIDMixin, TimestampMixin):
    """End-user account. Soft-deleted rows keep ``deleted_at`` set."""

    __tablename__ = "users"

    # Step 1: credentials
    username: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    step_one_complete: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Step 2: profile
    full_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone_number: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    college: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    step_two_complete: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Status
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    email_verified_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Password reset audit
    password_reset_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_password_reset: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    @validates("username", "email")
    def _normalize(self, key, value):
        return normalize_identifier(value)

    @property
    def is_signup_complete(self) -> bool:
        return bool(self.step_one_complete and self.step_two_complete)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def __repr__(self) -> str:
        return f"<User id={self.id} username={self.username} email={self.email}>"

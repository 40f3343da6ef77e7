"""User service: public profile lookups, owner profile updates and self-deactivation."""

import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from authgate.common.base import utcnow
from authgate.common.exceptions import AlreadyExists, Forbidden, NotFound
from authgate.domains.user import lifecycle
from authgate.domains.user.models import User, normalize_identifier
from authgate.domains.user.schemas import UserProfile, UserUpdate
from authgate.domains.user.repository import user_repository

logger = logging.getLogger(__name__)


def to_profile(user: User) -> UserProfile:
    return UserProfile.model_validate(user)


class UserService:
    """Service for user lookups outside the authentication flows."""

    def __init__(self, repository=None, clock: Callable[[], datetime] = utcnow):
        self.repository = repository or user_repository
        self.clock = clock

    async def get_profile(self, session: AsyncSession, user_id: str) -> Optional[UserProfile]:
        """Profile of a non-deleted user, or None."""
        user = await self.repository.get_by_id(session, user_id)
        return to_profile(user) if user else None

    async def find_profile(
        self,
        session: AsyncSession,
        username: Optional[str] = None,
        email: Optional[str] = None,
    ) -> Optional[UserProfile]:
        user = None
        if username:
            user = await self.repository.get_by_username(session, username)
        elif email:
            user = await self.repository.get_by_email(session, email)
        return to_profile(user) if user else None

    async def update_profile(
        self,
        session: AsyncSession,
        acting_user_id: str,
        user_id: str,
        data: UserUpdate,
    ) -> UserProfile:
        """Update the caller's own profile."""
        if acting_user_id != user_id:
            raise Forbidden("You can only update your own profile")

        user = await self.repository.get_by_id(session, user_id)
        if not user:
            raise NotFound("User not found")

        fields = data.model_dump(exclude_unset=True)
        new_username = fields.get("username")
        if new_username is not None:
            new_username = normalize_identifier(new_username)
            if new_username != user.username and await self.repository.username_exists(
                session, new_username
            ):
                raise AlreadyExists("Username already taken")
            fields["username"] = new_username

        updated = await self.repository.update(session, user_id, **fields)
        return to_profile(updated)

    async def deactivate_own_account(
        self,
        session: AsyncSession,
        acting_user_id: str,
        user_id: str,
    ) -> None:
        """Soft-delete the caller's own account; an admin can reactivate it."""
        if acting_user_id != user_id:
            raise Forbidden("You can only delete your own profile")

        user = await self.repository.get_by_id(session, user_id)
        if not user:
            raise NotFound("User not found")

        lifecycle.ensure_can_deactivate(user)
        lifecycle.deactivate(user, self.clock())
        await self.repository.save(session, user)
        logger.info(f"user.self_deactivate: user {user.username} ({user.id})")


# Singleton instance
user_service = UserService()

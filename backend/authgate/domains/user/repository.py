"""User repository for database operations.

Every lookup takes an explicit ``include_deleted`` flag. The default (False)
hides soft-deleted rows; only admin paths pass True.
"""

from typing import List, Optional, Tuple
from sqlalchemy import Select, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from authgate.common.exceptions import AlreadyExists
from authgate.domains.user.models import User, normalize_identifier

SEARCH_FIELDS = ("username", "email", "full_name", "college")
SORT_FIELDS = ("username", "email", "full_name", "created_at", "is_verified", "is_active")
MAX_PAGE_SIZE = 100


def _scoped(stmt: Select, include_deleted: bool) -> Select:
    if not include_deleted:
        stmt = stmt.where(User.deleted_at.is_(None))
    return stmt


class UserRepository:
    """Repository for user database operations."""

    async def get_by_id(
        self, session: AsyncSession, user_id: str, include_deleted: bool = False
    ) -> Optional[User]:
        stmt = _scoped(select(User).where(User.id == user_id), include_deleted)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_username(
        self, session: AsyncSession, username: str, include_deleted: bool = False
    ) -> Optional[User]:
        stmt = select(User).where(User.username == normalize_identifier(username))
        result = await session.execute(_scoped(stmt, include_deleted))
        return result.scalar_one_or_none()

    async def get_by_email(
        self, session: AsyncSession, email: str, include_deleted: bool = False
    ) -> Optional[User]:
        stmt = select(User).where(User.email == normalize_identifier(email))
        result = await session.execute(_scoped(stmt, include_deleted))
        return result.scalar_one_or_none()

    async def get_by_email_or_username(
        self, session: AsyncSession, identifier: str, include_deleted: bool = False
    ) -> Optional[User]:
        """Resolve a signin identifier; an email match wins over a username match."""
        value = normalize_identifier(identifier)
        stmt = select(User).where(or_(User.email == value, User.username == value))
        result = await session.execute(_scoped(stmt, include_deleted))
        users = list(result.scalars().all())
        for user in users:
            if user.email == value:
                return user
        return users[0] if users else None

    async def username_exists(self, session: AsyncSession, username: str) -> bool:
        """Check against every row, soft-deleted included (the unique index does)."""
        return await self.get_by_username(session, username, include_deleted=True) is not None

    async def email_exists(self, session: AsyncSession, email: str) -> bool:
        return await self.get_by_email(session, email, include_deleted=True) is not None

    async def create(self, session: AsyncSession, user: User) -> User:
        session.add(user)
        await self._flush(session)
        await session.refresh(user)
        return user

    async def update(self, session: AsyncSession, user_id: str, **fields) -> Optional[User]:
        """Apply a partial update; works on soft-deleted rows too."""
        user = await self.get_by_id(session, user_id, include_deleted=True)
        if user is None:
            return None
        for key, value in fields.items():
            setattr(user, key, value)
        return await self.save(session, user)

    async def save(self, session: AsyncSession, user: User) -> User:
        """Flush changes already applied to a loaded user."""
        await self._flush(session)
        return user

    async def count_all(self, session: AsyncSession, include_deleted: bool = False) -> int:
        stmt = _scoped(select(func.count()).select_from(User), include_deleted)
        result = await session.execute(stmt)
        return int(result.scalar_one())

    async def list_users(
        self,
        session: AsyncSession,
        page: int = 1,
        limit: int = 10,
        verified: Optional[bool] = None,
        active: Optional[bool] = None,
        search: Optional[str] = None,
        search_field: str = "all",
        sort_by: str = "created_at",
        sort_order: str = "desc",
        include_deleted: bool = True,
    ) -> Tuple[List[User], int]:
        """Paginated, filtered, sorted listing. Returns (page_items, total)."""
        page = max(1, page)
        limit = min(max(1, limit), MAX_PAGE_SIZE)

        stmt = _scoped(select(User), include_deleted)
        if verified is not None:
            stmt = stmt.where(User.is_verified == verified)
        if active is not None:
            stmt = stmt.where(User.is_active == active)

        term = (search or "").strip().lower()
        if term:
            fields = SEARCH_FIELDS if search_field == "all" else (search_field,)
            if any(f not in SEARCH_FIELDS for f in fields):
                raise ValueError(f"Unsupported search field: {search_field}")
            stmt = stmt.where(or_(*[
                func.lower(getattr(User, f)).contains(term, autoescape=True)
                for f in fields
            ]))

        count_stmt = select(func.count()).select_from(stmt.subquery())
        total = int((await session.execute(count_stmt)).scalar_one())

        if sort_by not in SORT_FIELDS:
            raise ValueError(f"Unsupported sort field: {sort_by}")
        column = getattr(User, sort_by)
        order = column.asc() if sort_order.lower() == "asc" else column.desc()
        stmt = stmt.order_by(order, User.id.asc()).offset((page - 1) * limit).limit(limit)

        result = await session.execute(stmt)
        return list(result.scalars().all()), total

    async def _flush(self, session: AsyncSession) -> None:
        try:
            await session.flush()
        except IntegrityError as e:
            await session.rollback()
            raise AlreadyExists(_conflict_message(e)) from e


def _conflict_message(error: IntegrityError) -> str:
    detail = str(error.orig).lower()
    if "email" in detail:
        return "Email already in use"
    if "username" in detail:
        return "Username already taken"
    return "Account already exists"


# Singleton instance
user_repository = UserRepository()

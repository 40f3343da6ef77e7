"""
Database connection management.

SQLite (local development, tests) or PostgreSQL (deployment) through one
async SQLAlchemy engine. The database is a critical dependency: without it
the service does not start.
"""

from pathlib import Path
from typing import AsyncIterator, Optional
import logging
from contextlib import asynccontextmanager

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

logger = logging.getLogger(__name__)


class DatabaseManager:
    """
    Owns the async engine and session factory.

    Usage:
        await db_manager.initialize()
        async with db_manager.get_session() as session:
            result = await session.execute(stmt)
    """

    def __init__(self):
        self.available = False
        self.engine: Optional[AsyncEngine] = None
        self.session_factory: Optional[async_sessionmaker[AsyncSession]] = None

    async def initialize(self, database_url: Optional[str] = None, **engine_kwargs):
        """Create the engine, probe it and create missing tables."""
        from authgate.common.config import settings

        url = database_url or settings.database_url
        is_sqlite = url.startswith("sqlite")
        db_type = "SQLite" if is_sqlite else "PostgreSQL"

        if is_sqlite and database_url is None:
            Path(settings.sqlite_path).parent.mkdir(parents=True, exist_ok=True)

        kwargs = {"echo": settings.debug}
        if not is_sqlite:
            kwargs.update({
                "pool_size": 10,
                "max_overflow": 20,
                "pool_pre_ping": True,
            })
        kwargs.update(engine_kwargs)

        try:
            self.engine = create_async_engine(url, **kwargs)
            self.session_factory = async_sessionmaker(
                self.engine,
                class_=AsyncSession,
                expire_on_commit=False
            )

            async with self.engine.begin() as conn:
                await conn.execute(text("SELECT 1"))
        except Exception as e:
            logger.error(f"✗ {db_type} connection failed: {e}")
            raise RuntimeError(
                f"{db_type} is not available. This is a critical dependency. "
                f"Check your configuration and database setup."
            ) from e

        await self.create_all()
        self.available = True
        logger.info(f"✓ {db_type} connection established")

    async def create_all(self):
        """Create all tables registered on Base.metadata."""
        from authgate.common.base import Base
        # 导入所有模型确保它们被注册
        from authgate.domains.user import models as user_models  # noqa: F401
        from authgate.domains.admin import models as admin_models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def ping(self) -> bool:
        """Return True when a trivial query succeeds."""
        if self.engine is None:
            return False
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.warning(f"Database ping failed: {e}")
            return False

    async def dispose(self):
        if self.engine is not None:
            await self.engine.dispose()
        self.available = False

    @asynccontextmanager
    async def get_session(self) -> AsyncIterator[AsyncSession]:
        """
        Transactional session: commits on success, rolls back on error.
        """
        if not self.available:
            raise RuntimeError("Database is not available")

        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise


# Global database manager instance
db_manager = DatabaseManager()


async def get_session() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency yielding a request-scoped transactional session."""
    async with db_manager.get_session() as session:
        yield session

"""
Catalog Database Configuration

Async engine and session management for PostgreSQL.
"""

import logging
from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from ..core.config import Settings, get_settings
from ..models import Base

logger = logging.getLogger(__name__)


class DatabaseManager:
    """Owns the async engine and session factory."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.engine: Optional[AsyncEngine] = None
        self.session_factory: Optional[async_sessionmaker] = None

    async def initialize(self, create_tables: bool = True) -> None:
        """Create the engine and, optionally, missing tables."""
        if self.engine is not None:
            return

        self.engine = create_async_engine(
            self.settings.async_database_url,
            pool_size=self.settings.DATABASE_POOL_SIZE,
            max_overflow=self.settings.DATABASE_MAX_OVERFLOW,
            pool_pre_ping=True,
            echo=self.settings.DEBUG,
        )
        self.session_factory = async_sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

        if create_tables:
            async with self.engine.begin() as connection:
                await connection.run_sync(Base.metadata.create_all)

        logger.info(
            "Database initialized",
            extra={"pool_size": self.settings.DATABASE_POOL_SIZE},
        )

    async def close(self) -> None:
        """Dispose of the engine and its connections."""
        if self.engine is not None:
            await self.engine.dispose()
            self.engine = None
            self.session_factory = None
            logger.info("Database connections closed")


database_manager = DatabaseManager()


async def init_database(create_tables: bool = True) -> None:
    """Initialize database connection and create tables."""
    try:
        await database_manager.initialize(create_tables=create_tables)
    except Exception:
        logger.exception("Failed to initialize database")
        raise


async def get_database_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency yielding a session.

    Handlers commit explicitly; anything left uncommitted is rolled back when
    the request fails.
    """
    if database_manager.session_factory is None:
        await database_manager.initialize()

    async with database_manager.session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def close_database() -> None:
    """Close database connections and cleanup resources."""
    await database_manager.close()

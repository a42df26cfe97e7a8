"""Async engine and session plumbing for the campaign store.

PostgreSQL is reached through asyncpg and SQLite through aiosqlite; plain
``postgresql://`` and ``sqlite://`` URLs are upgraded to those drivers.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from . import Base
from ..config import config

logger = logging.getLogger(__name__)

# sync scheme -> async scheme
_ASYNC_DRIVERS = {
    "postgresql": "postgresql+asyncpg",
    "postgres": "postgresql+asyncpg",
    "postgresql+asyncpg": "postgresql+asyncpg",
    "sqlite": "sqlite+aiosqlite",
    "sqlite+aiosqlite": "sqlite+aiosqlite",
}


class DatabaseManager:
    """Process-wide holder of the engine and its session factory.

    Both are built lazily from ``DATABASE_URL`` on first use; tests install
    their own engine through :meth:`use_engine`.
    """

    _engine: Optional[AsyncEngine] = None
    _sessions: Optional[async_sessionmaker[AsyncSession]] = None

    @staticmethod
    def get_database_url(database_url: Optional[str] = None) -> str:
        """Return ``database_url`` (or the configured one) with an async driver.

        Raises:
            ConfigError: no URL was given and ``DATABASE_URL`` is unset.
            ValueError: the scheme has no async driver here.
        """
        if not database_url:
            config.validate_for_database()
        url = database_url or config.DATABASE_URL
        scheme, sep, rest = url.partition("://")
        driver = _ASYNC_DRIVERS.get(scheme.lower()) if sep else None
        if driver is None:
            raise ValueError(f"Unsupported database scheme {scheme!r}; use PostgreSQL or SQLite")
        return f"{driver}://{rest}"

    @classmethod
    def get_engine(cls) -> AsyncEngine:
        if cls._engine is None:
            url = cls.get_database_url()
            options = {"echo": config.DATABASE_ECHO}
            if not url.startswith("sqlite"):
                options.update(config.get_database_connection_args(), pool_recycle=3600)
            cls._engine = create_async_engine(url, **options)
            logger.info("Opened database engine for %s", cls._engine.url.render_as_string())
        return cls._engine

    @classmethod
    def use_engine(cls, engine: AsyncEngine) -> None:
        cls._engine = engine
        cls._sessions = None

    @classmethod
    def get_session_factory(cls) -> async_sessionmaker[AsyncSession]:
        if cls._sessions is None:
            cls._sessions = async_sessionmaker(
                cls.get_engine(), expire_on_commit=False, autoflush=False
            )
        return cls._sessions

    @classmethod
    async def create_tables(cls) -> None:
        """Create any missing campaign, log and lead tables."""
        async with cls.get_engine().begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Campaign store schema is in place")

    @classmethod
    async def close(cls) -> None:
        """Dispose of the engine; the next session opens a fresh one."""
        engine, cls._engine, cls._sessions = cls._engine, None, None
        if engine is not None:
            await engine.dispose()
            logger.info("Closed database engine")


@asynccontextmanager
async def get_db_session() -> AsyncIterator[AsyncSession]:
    """Unit of work: commit when the block exits cleanly, else roll back.

        async with get_db_session() as session:
            campaign = await session.get(Campaign, campaign_id)
            campaign.status = CampaignStatus.SCORING
    """
    async with DatabaseManager.get_session_factory()() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        await session.commit()


def create_test_engine(database_url: Optional[str] = None) -> AsyncEngine:
    """Engine without connection pooling, for per-test databases."""
    return create_async_engine(
        DatabaseManager.get_database_url(database_url), poolclass=NullPool
    )

"""
PostgreSQL Database Connection

Async SQLAlchemy setup for the registrar tables. Engines are built on demand
so importing the models never needs a database driver.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from shared.config import Settings, get_settings

logger = structlog.get_logger(__name__)


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""


def create_engine(url: str | None = None, app_settings: Settings | None = None) -> AsyncEngine:
    """
    Create an async engine.

    Args:
        url: Explicit database URL (defaults to settings.async_database_url)
        app_settings: Settings to read pool options from

    Returns:
        AsyncEngine
    """
    app_settings = app_settings or get_settings()
    url = url or app_settings.async_database_url

    if url.startswith("sqlite"):
        # One shared connection keeps an in-memory database alive across sessions
        return create_async_engine(
            url,
            echo=app_settings.database_echo,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )

    return create_async_engine(
        url,
        echo=app_settings.database_echo,
        pool_size=app_settings.database_pool_size,
        max_overflow=app_settings.database_max_overflow,
        pool_pre_ping=True,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create async session factory bound to an engine."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@asynccontextmanager
async def session_scope(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """
    Provide a session that commits on success and rolls back on error.

    Yields:
        AsyncSession: Database session
    """
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db(engine: AsyncEngine) -> None:
    """Initialize database - create all tables."""
    # Table models register themselves on Base.metadata when imported
    import services.academic_service.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database initialized")


async def close_db(engine: AsyncEngine) -> None:
    """Close database connections."""
    await engine.dispose()
    logger.info("Database connections closed")

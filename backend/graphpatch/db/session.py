"""Database session management.

The service only reads from the automation engine's database (webhook
registrations and credential records). The engine and session factory are
built from ``DATABASE_URL`` using SQLAlchemy 2.0 async patterns.
"""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from graphpatch.core.config import settings
from graphpatch.core.exceptions import ConfigurationError

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_engine() -> AsyncEngine:
    """Return the process-wide async engine, creating it on first use.

    Raises:
        ConfigurationError: If DATABASE_URL is not configured.
    """
    global _engine
    if _engine is None:
        if not settings.DATABASE_URL:
            raise ConfigurationError("DATABASE_URL")
        _engine = create_async_engine(
            str(settings.DATABASE_URL),
            pool_pre_ping=True,
            pool_size=settings.DATABASE_POOL_SIZE,
            max_overflow=settings.DATABASE_MAX_OVERFLOW,
            echo=settings.DEBUG,
        )
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return the async session factory bound to ``get_engine()``."""
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
    return _session_factory


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency for FastAPI.

    Registry lookups are read-only, so the session is rolled back on
    exception and simply closed otherwise.

    Yields:
        AsyncSession: The database session for the request.
    """
    async with get_session_factory()() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def dispose_engine() -> None:
    """Close pooled connections (called on application shutdown)."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None


__all__ = [
    "dispose_engine",
    "get_db",
    "get_engine",
    "get_session_factory",
]

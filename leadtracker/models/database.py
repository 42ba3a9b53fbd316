"""Async database engine and session management."""

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from leadtracker.config import get_settings

# Lazy initialization: engine created on first use, not at import time,
# so alembic and the CLI can import models without a live database.
_engine = None
_async_session = None


def get_engine():
    global _engine
    if _engine is None:
        settings = get_settings()
        kwargs = {"pool_pre_ping": True, "echo": settings.debug}
        if not settings.database_url.startswith("sqlite"):
            kwargs.update(pool_size=10, max_overflow=5)
        _engine = create_async_engine(settings.database_url, **kwargs)
    return _engine


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    global _async_session
    if _async_session is None:
        _async_session = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _async_session


async def get_db() -> AsyncSession:
    """FastAPI dependency: yields an async session."""
    session_maker = get_session_maker()
    async with session_maker() as session:
        yield session

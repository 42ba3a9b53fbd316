"""Pytest configuration."""

import os

# Ensure test environment
os.environ.setdefault("LT_NONCE_SECRET", "test-secret-key-for-testing")
os.environ.setdefault("LT_SESSION_SECRET", "test-session-secret")
os.environ.setdefault("LT_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LT_DEBUG", "true")
os.environ.setdefault("LT_ADMIN_API_KEY", "test-admin-key")
os.environ.setdefault("LT_BASE_URL", "https://shop.example.com")
os.environ.setdefault("LT_SITE_NAME", "Example Plumbing")

from contextlib import asynccontextmanager

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool


async def create_memory_session_maker():
    """In-memory SQLite with every table created. Must be called on the loop that will use it."""
    from leadtracker.models.tables import Base

    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    return engine, async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
def memory_db():
    @asynccontextmanager
    async def open_db():
        engine, session_maker = await create_memory_session_maker()
        try:
            async with session_maker() as session:
                yield session
        finally:
            await engine.dispose()

    return open_db


@pytest.fixture
def memory_db_override():
    """get_db replacement that builds its database lazily, on the app's own event loop."""
    state = {}

    async def get_memory_db():
        if "session_maker" not in state:
            state["engine"], state["session_maker"] = await create_memory_session_maker()
        async with state["session_maker"]() as session:
            yield session

    return get_memory_db

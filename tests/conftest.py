"""Global pytest fixtures for the OpenClique quest lifecycle service.

This module provides shared fixtures for testing including:
- An in-memory SQLite database with the full schema
- Async sessions configured like the production session factory
- Settings isolation
"""

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from openclique.config import get_settings
from openclique.models import Base

TEST_JWT_SECRET = "test-secret-key-with-enough-length-for-hs256"


# ===========================================
# SETTINGS
# ===========================================


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch: pytest.MonkeyPatch):
    """Fresh settings per test, with a known JWT secret."""
    monkeypatch.setenv("OPENCLIQUE_JWT_SECRET_KEY", TEST_JWT_SECRET)
    monkeypatch.delenv("OPENCLIQUE_VERSION_CHECKED_UPDATES", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# ===========================================
# DATABASE FIXTURES
# ===========================================


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory SQLite engine with the schema created from the ORM metadata."""
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)

    # pysqlite's implicit transactions break SAVEPOINT; emit BEGIN ourselves
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Session configured like openclique.database.get_session_factory()."""
    factory = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with factory() as session:
        yield session

"""Pytest configuration and shared fixtures.

This module provides:
- A fresh in-memory SQLite database per test (foreign keys enforced)
- Async session fixture for repository/service tests
- FastAPI test client with auth bypass for route tests
- Owner fixtures (user + category) for ownership-scoped tests
"""

# Set environment variables BEFORE any imports that trigger Settings validation
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("SESSION_SECRET_KEY", "test_session_secret_key_for_testing")
os.environ.setdefault("REQUIRE_HTTPS", "false")
os.environ.setdefault("RUN_MIGRATIONS_ON_STARTUP", "false")

from collections.abc import AsyncGenerator, Generator
from unittest.mock import patch

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from core.config import clear_settings_cache
from core.database import Base, enable_sqlite_foreign_keys
from models import Category, User
from tests.factories import CategoryFactory, UserFactory, create_async

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest_asyncio.fixture(scope="function")
async def test_engine() -> AsyncGenerator[AsyncEngine]:
    """Create a fresh in-memory database engine for each test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    enable_sqlite_foreign_keys(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(test_engine: AsyncEngine) -> AsyncGenerator[AsyncSession]:
    """Provide a database session for each test."""
    session_maker = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with session_maker() as session:
        yield session
        await session.rollback()


# =============================================================================
# Owner Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def owner(db_session: AsyncSession) -> User:
    """The user acting in most tests."""
    return await create_async(UserFactory, db_session)


@pytest_asyncio.fixture
async def other_owner(db_session: AsyncSession) -> User:
    """A second user whose data must stay invisible to ``owner``."""
    return await create_async(UserFactory, db_session)


@pytest_asyncio.fixture
async def category(db_session: AsyncSession, owner: User) -> Category:
    return await create_async(
        CategoryFactory, db_session, owner_id=owner.id, name="Electronics"
    )


@pytest_asyncio.fixture
async def foreign_category(db_session: AsyncSession, other_owner: User) -> Category:
    return await create_async(
        CategoryFactory, db_session, owner_id=other_owner.id, name="Not Yours"
    )


# =============================================================================
# FastAPI Test Client Fixtures
# =============================================================================


@pytest_asyncio.fixture(scope="function")
async def app(
    test_engine: AsyncEngine, db_session: AsyncSession, owner: User
) -> AsyncGenerator[FastAPI]:
    """FastAPI app wired to the test database, authenticated as ``owner``.

    Routes share the test's session so data created by factories is visible
    without committing.
    """
    from core.auth import require_auth
    from core.database import get_db
    from main import app as fastapi_app

    async def _get_test_db() -> AsyncGenerator[AsyncSession]:
        yield db_session

    fastapi_app.state.engine = test_engine
    fastapi_app.state.init_done = True
    fastapi_app.state.init_error = None
    fastapi_app.dependency_overrides[get_db] = _get_test_db
    fastapi_app.dependency_overrides[require_auth] = lambda: owner.id

    yield fastapi_app

    fastapi_app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient]:
    """Authenticated async HTTP client (acts as ``owner``)."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest_asyncio.fixture(scope="function")
async def unauthenticated_client(app: FastAPI) -> AsyncGenerator[AsyncClient]:
    """Client with no session; the real require_auth dependency runs."""
    from core.auth import require_auth

    app.dependency_overrides.pop(require_auth, None)
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# =============================================================================
# Utility Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def _disable_rate_limiter() -> Generator[None]:
    """Disable slowapi rate limiting so repeated calls never hit 429."""
    with patch("core.ratelimit.limiter.enabled", False):
        yield


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Generator[None]:
    """Reset settings cache before each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()

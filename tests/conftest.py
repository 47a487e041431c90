"""
Global test fixtures and configuration.

This module provides base fixtures for all tests:
- A fresh SQLite database file per test
- Database session for arranging and verifying data
- HTTP client with dependency overrides
- Base data fixtures (user, auth_headers, auth_headers_for)

Each request handled by the app gets its own session from the same
session factory, as in production. Tests must commit their arranged data
before calling the API.
"""

import os
import pytest
from typing import AsyncGenerator
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool

# Set test environment variables BEFORE importing app
os.environ["MODE"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["SENTRY_DSN"] = ""

from vision.main import app
from vision.api.dependencies import get_db
from vision.db.base import Base


# ==================== Database ====================

@pytest.fixture(scope="function")
async def test_engine(tmp_path):
    """
    Create a test database engine on a fresh SQLite file.

    Creates all tables before the test and disposes the engine after.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        poolclass=NullPool,  # No connection pooling in tests
        echo=False  # Set to True for SQL debugging
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture(scope="function")
def session_factory(test_engine):
    return sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False
    )


@pytest.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """
    Session used by the test itself to arrange and verify data.

    Use `.execution_options(populate_existing=True)` when re-reading rows
    the API has changed since they were loaded here.
    """
    async with session_factory() as session:
        yield session


# ==================== FastAPI Client ====================

@pytest.fixture(scope="function")
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """
    Create HTTP client for testing FastAPI endpoints.

    Overrides get_db so every request opens a session on the test database.
    """

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    # Clear overrides after test
    app.dependency_overrides.clear()


# ==================== Base Data Fixtures ====================

@pytest.fixture
async def user(db_session: AsyncSession):
    """
    Create a test user.
    """
    from tests.factories.user import UserFactory
    user = await UserFactory.create_async(db_session)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
def auth_headers_for():
    """
    Build authentication headers for any user.

    Usage:
        headers = auth_headers_for(other_user)
    """
    from vision.core.security import create_access_token

    def _headers(target_user):
        token = create_access_token(
            data={"sub": str(target_user.id)},
            token_version=target_user.token_version
        )
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
async def auth_headers(user, auth_headers_for):
    """
    Generate authentication headers for the default test user.
    """
    return auth_headers_for(user)


@pytest.fixture
async def organization(db_session: AsyncSession, user):
    """
    Create a public organization with `user` as its only ADMIN.
    """
    from tests.factories.organization import OrganizationFactory
    org = await OrganizationFactory.create_with_admin_async(db_session, admin_id=user.id)
    await db_session.commit()
    await db_session.refresh(org)
    return org


@pytest.fixture
async def board(db_session: AsyncSession, user):
    """
    Create a personal board owned by `user`.
    """
    from tests.factories.board import BoardFactory
    board = await BoardFactory.create_async(db_session, created_by_id=user.id)
    await db_session.commit()
    await db_session.refresh(board)
    return board

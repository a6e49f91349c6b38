"""
Pytest configuration and fixtures for task graph tests.
"""

import os

# Point the application at SQLite before any taskgraph module reads settings
os.environ.setdefault("TASKGRAPH_DATABASE_URL", "sqlite+aiosqlite://")

import pytest
import pytest_asyncio
from fastapi import Request
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

import taskgraph.models  # noqa: F401  (registers tables)
from taskgraph.auth import AuthenticatedUser, get_current_user
from taskgraph.config import Settings
from taskgraph.database import get_session
from taskgraph.main import app
from taskgraph.models import Task
from taskgraph.services import GraphIntegrityFacade, SqlTaskStore


# In-memory SQLite shared by every connection of one engine
TEST_DATABASE_URL = "sqlite+aiosqlite://"

OWNER = "owner-1"
OTHER_OWNER = "owner-2"


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def test_session(test_engine):
    """Create a test database session."""
    async_session_maker = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session_maker() as session:
        yield session


@pytest.fixture
def settings():
    """Policy limits used by the engine tests."""
    return Settings(
        database_url=TEST_DATABASE_URL,
        max_task_depth=3,
        max_dependency_depth=5,
        max_tasks_per_owner=1000,
    )


@pytest.fixture
def store(test_session):
    return SqlTaskStore(test_session)


@pytest.fixture
def engine(store, settings):
    return GraphIntegrityFacade(store, settings)


@pytest.fixture
def make_task(store):
    """Factory creating a persisted task for an owner."""

    async def _make_task(title: str, owner_id: str = OWNER, **fields) -> Task:
        task = Task(owner_id=owner_id, title=title, **fields)
        return await store.save_task(task)

    return _make_task


@pytest_asyncio.fixture(scope="function")
async def client(test_engine):
    """
    Create an async test client with test database.

    The caller's identity comes from the ``X-Test-Owner`` header
    (default ``owner-1``) instead of a Firebase token.
    """
    async_session_maker = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async def override_get_session():
        async with async_session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def override_get_current_user(request: Request) -> AuthenticatedUser:
        return AuthenticatedUser(uid=request.headers.get("X-Test-Owner", OWNER))

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_current_user] = override_get_current_user

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()

"""
ClassJournal Backend - Test Configuration (conftest.py)
========================================================

What:  Shared pytest fixtures for the entire test suite.
How:   Environment variables are set before any `classjournal` import so the
       settings singleton, engine, and media service pick up test values.

Fixture Hierarchy:
    Function-scoped:
    ├── mock_db_session: AsyncMock session (no database at all)
    ├── temp_storage:    fresh directory for media tests
    ├── sample_image_bytes
    ├── db_engine:       in-memory SQLite built from the ORM metadata
    ├── db_session:      AsyncSession on db_engine
    ├── teacher / student / other_student: registered users
    └── test_client:     httpx AsyncClient on the app, sessions from db_engine
"""

import os
import tempfile

# Must run before any classjournal import
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-not-for-production-use"
os.environ["STORAGE_ROOT"] = tempfile.mkdtemp(prefix="classjournal_test_")
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["LOG_LEVEL"] = "WARNING"

from typing import AsyncGenerator, Dict  # noqa: E402
from unittest.mock import AsyncMock, MagicMock  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import event  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from classjournal import models  # noqa: E402,F401
from classjournal.database import Base, get_db_session  # noqa: E402
from classjournal.services.user_service import user_service  # noqa: E402


# ══════════════════════════════════════════════════════════════════════════
# Mocks and files
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def mock_db_session():
    """
    A mock AsyncSession for service tests that don't need SQL.

    Usage:
        result = MagicMock()
        result.scalar_one_or_none.return_value = user
        mock_db_session.execute.return_value = result
    """
    session = AsyncMock()
    session.execute = AsyncMock(return_value=MagicMock())
    session.get = AsyncMock(return_value=None)
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    return session


@pytest.fixture
def temp_storage(tmp_path):
    storage_dir = tmp_path / "storage"
    storage_dir.mkdir()
    return str(storage_dir)


@pytest.fixture
def sample_image_bytes():
    """Smallest well-formed PNG: signature plus an empty IEND chunk."""
    return (
        b"\x89PNG\r\n\x1a\n"
        b"\x00\x00\x00\x00IEND\xaeB`\x82"
    )


# ══════════════════════════════════════════════════════════════════════════
# Database
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def db_engine():
    """
    In-memory SQLite shared by every session of one test.

    StaticPool keeps a single connection so all sessions see the same
    database; foreign keys are switched on so ON DELETE CASCADE applies.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def teacher(db_session):
    user = await user_service.register(
        db_session, email="teacher@school.test", password="secret", name="Ms. Teacher", role="teacher"
    )
    await db_session.commit()
    return user


@pytest_asyncio.fixture
async def student(db_session):
    user = await user_service.register(
        db_session, email="student@school.test", password="secret", name="Sam Student"
    )
    await db_session.commit()
    return user


@pytest_asyncio.fixture
async def other_student(db_session):
    user = await user_service.register(
        db_session, email="other@school.test", password="secret", name="Olive Other", role="STUDENT"
    )
    await db_session.commit()
    return user


# ══════════════════════════════════════════════════════════════════════════
# HTTP
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def test_client(session_factory):
    """
    httpx client talking to the app in-process.

    `get_db_session` is overridden to hand out sessions on the test engine
    with the same commit/rollback behavior as the real dependency.
    """
    from classjournal.main import app

    async def _override_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = _override_session
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


async def register_and_login(
    client: AsyncClient,
    email: str,
    role: str = "student",
    password: str = "secret",
    name: str = "Test User",
) -> Dict[str, str]:
    """Register through the API, log in, and return the user id, token, and Authorization value."""
    response = await client.post(
        "/api/user/register",
        json={"name": name, "email": email, "password": password, "role": role},
    )
    assert response.status_code == 201, response.text
    login = await client.post("/api/user/login", json={"email": email, "password": password})
    assert login.status_code == 200, login.text
    body = login.json()
    return {
        "id": body["user"]["id"],
        "token": body["token"],
        "authorization": f"Bearer {body['token']}",
    }

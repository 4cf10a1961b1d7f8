"""
NoteVault Backend — Test Configuration (conftest.py)
======================================================

What:  Shared pytest fixtures for the entire test suite.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── mock_store:     AsyncMock(spec=NoteStore) for NoteService unit tests
    ├── make_note:      builds detached Note instances with explicit fields
    ├── db_engine:      in-memory SQLite engine with the schema created
    ├── db_session:     AsyncSession bound to db_engine (store integration tests)
    ├── api_app:        fresh FastAPI app whose sessions use db_engine
    ├── test_client:    HTTPX AsyncClient against api_app
    └── auth_headers:   callable user_id → {"Authorization": "Bearer …"}
"""

import os

# Must run before any notevault import: settings are read at import time
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET"] = "test-secret-not-for-production-0123456789"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["DB_AUTO_CREATE"] = "false"
os.environ["API_PREFIX"] = "/api"

from datetime import datetime, timezone
from typing import AsyncGenerator, Callable, Dict
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from notevault.auth import CallerIdentity, create_access_token
from notevault.database import create_schema, get_db_session
from notevault.models.note import Note
from notevault.services.note_store import NoteStore


ALICE = "user-alice"
BOB = "user-bob"


# ══════════════════════════════════════════════════════════════════════════
# Unit-test fixtures (no database)
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def alice() -> CallerIdentity:
    return CallerIdentity(user_id=ALICE)


@pytest.fixture
def bob() -> CallerIdentity:
    return CallerIdentity(user_id=BOB)


@pytest.fixture
def mock_store():
    """
    A NoteStore double: every abstract method is an AsyncMock.

    Usage:
        mock_store.get.return_value = make_note()
        service = NoteService(mock_store)
    """
    return AsyncMock(spec=NoteStore)


@pytest.fixture
def make_note() -> Callable[..., Note]:
    """Factory for detached Note objects with every column populated."""

    def _make(**overrides) -> Note:
        stamp = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)
        fields = {
            "id": uuid4(),
            "owner": ALICE,
            "title": "Groceries",
            "content": "milk, eggs",
            "tags": [],
            "is_archived": False,
            "is_pinned": False,
            "created_at": stamp,
            "updated_at": stamp,
        }
        fields.update(overrides)
        return Note(**fields)

    return _make


# ══════════════════════════════════════════════════════════════════════════
# Database fixtures (SQLite in memory, one connection shared via StaticPool)
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def db_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session


@pytest.fixture
def api_app(db_engine) -> FastAPI:
    """
    A fresh app whose sessions use db_engine.

    Tests may add their own `api_app.dependency_overrides` entries.
    """
    from notevault.main import create_app

    factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)

    async def _session_override() -> AsyncGenerator[AsyncSession, None]:
        async with factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app = create_app()
    app.dependency_overrides[get_db_session] = _session_override
    return app


@pytest_asyncio.fixture
async def test_client(api_app) -> AsyncGenerator[AsyncClient, None]:
    """
    HTTPX AsyncClient talking to `api_app`.

    Usage:
        async def test_list(test_client, auth_headers):
            response = await test_client.get("/api/notes", headers=auth_headers("u1"))
    """
    transport = ASGITransport(app=api_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def auth_headers() -> Callable[[str], Dict[str, str]]:
    def _headers(user_id: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user_id)}"}

    return _headers

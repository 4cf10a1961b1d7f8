"""
NoteVault Backend — Database Engine & Sessions
================================================

What:  The async engine, the session factory, the declarative base and the
       per-request session dependency.
How:   One engine per process, built from DATABASE_URL at import. Each request
       gets its own AsyncSession; the transaction commits when the handler
       returns and rolls back when anything raises.
Who:   `get_db_session` is injected into the notes router; tests override it
       to point at an in-memory SQLite engine.

Pool settings (PostgreSQL):
    DB_POOL_SIZE / DB_MAX_OVERFLOW   steady and burst connection counts
    DB_POOL_PRE_PING                 drop connections the server closed
    pool_recycle=3600                never reuse a connection older than an hour

    The aiosqlite dialect chooses its own pool and rejects these arguments,
    so they are only passed for non-SQLite URLs.
"""

import logging
from typing import Any, AsyncGenerator, Dict

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from notevault.config import settings

logger = logging.getLogger(__name__)


def _engine_options() -> Dict[str, Any]:
    options: Dict[str, Any] = {"echo": settings.log_level == "DEBUG"}
    if not settings.is_sqlite:
        options.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=settings.db_pool_pre_ping,
            pool_recycle=3600,
        )
    return options


engine: AsyncEngine = create_async_engine(settings.database_url, **_engine_options())

# Notes stay readable after commit; responses are serialized from them
async_session_factory = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Declarative base shared by `notes` and `note_tags`."""


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Session-per-request dependency.

    The handler (and every store call it makes) shares this session, so one
    request is one transaction. Exceptions are re-raised after rollback and
    reach the global handlers unchanged.
    """
    session = async_session_factory()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


async def create_schema(bind: AsyncEngine = engine) -> None:
    """
    Create any missing tables on `bind`.

    Used when DB_AUTO_CREATE is on and by the test suite; migrations are the
    normal path for PostgreSQL.
    """
    from notevault.models import note  # noqa: F401  (registers the tables)

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engine() -> None:
    """Close pooled connections on shutdown."""
    await engine.dispose()


async def ping_database() -> bool:
    """True when the engine can run `SELECT 1`; used by GET /health."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        logger.warning("Database ping failed: %s", e)
        return False
    return True

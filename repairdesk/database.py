"""
RepairDesk Backend - Database Session Management
==================================================

What:  Async SQLAlchemy engine, session factory, and FastAPI dependency.
How:   Creates an async engine, provides a session dependency that
       auto-commits on success and auto-rolls-back on error.
Who:   Used by route handlers via FastAPI's dependency injection system.
When:  Engine is created at module import; sessions are created per-request.

Supported backends:
    sqlite+aiosqlite   Default embedded store. Foreign keys are switched on per
                       connection because SQLite leaves them off.
    postgresql+asyncpg Server deployments. Pool sizing comes from settings.
"""

import logging
from typing import AsyncGenerator

from sqlalchemy import event, text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from tenacity import (
    before_sleep_log,
    retry,
    stop_after_attempt,
    wait_exponential_jitter,
)

from repairdesk.config import settings

logger = logging.getLogger(__name__)


def build_engine(database_url: str) -> AsyncEngine:
    """
    Create an async engine configured for the given URL.

    SQLite gets a per-connection `PRAGMA foreign_keys=ON` and no pool
    sizing arguments (its pool classes reject them).
    """
    url = make_url(database_url)
    echo = settings.log_level == "DEBUG"

    if url.get_backend_name() == "sqlite":
        if url.database and url.database != ":memory:":
            from pathlib import Path
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)

        new_engine = create_async_engine(database_url, echo=echo)

        @event.listens_for(new_engine.sync_engine, "connect")
        def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return new_engine

    return create_async_engine(
        database_url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=settings.db_pool_pre_ping,
        pool_recycle=3600,
        echo=echo,
    )


# ── Engine & Session Factory ──────────────────────────────────────────────
engine = build_engine(settings.database_url)

# expire_on_commit=False: attributes stay readable after the review workflow
# commits and hands the record to the dispatcher.
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Shares a single metadata object used by create_all() and by Alembic.
    """
    pass


# ── Session Dependency ────────────────────────────────────────────────────
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    How it works:
        1. Creates a new session from the factory
        2. Yields it to the route handler
        3. On success: commits whatever the handler left pending
        4. On error: rolls back the transaction
        5. Always: closes the session

    Services that must control their own transaction boundary (the review
    workflow commits before dispatching notifications) commit explicitly;
    the final commit here is then a no-op.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ── Lifecycle Helpers ─────────────────────────────────────────────────────
@retry(
    stop=stop_after_attempt(settings.db_connect_attempts),
    wait=wait_exponential_jitter(initial=1, max=settings.db_connect_max_wait, jitter=1),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)
async def wait_for_database(target: AsyncEngine = engine) -> None:
    """
    Block until the database answers `SELECT 1`.

    Retries with exponential backoff so a container started next to its
    database does not crash while the database is still booting.
    """
    async with target.connect() as conn:
        await conn.execute(text("SELECT 1"))
    logger.info("Database reachable at %s", make_url(str(target.url)).render_as_string(hide_password=True))


async def create_tables(target: AsyncEngine = engine) -> None:
    """Create every table registered on Base.metadata (idempotent)."""
    import repairdesk.models  # noqa: F401  registers all models

    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engine() -> None:
    """Close all pooled connections. Called during application shutdown."""
    await engine.dispose()

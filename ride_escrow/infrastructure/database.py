"""
Async SQLAlchemy engine and session factory.

Uses ``asyncpg`` as the PostgreSQL driver for non-blocking I/O.  Every API
command runs inside one session / transaction (see ``api.dependencies``),
which is what makes a transition and its value transfer commit together.

``DATABASE_URL`` may also point at SQLite (``sqlite+aiosqlite://``) for
local runs.  SQLite has no row locks, so ``serialize_sqlite_writes`` opens
every transaction with ``BEGIN IMMEDIATE``: the whole database stands in
for the ``FOR UPDATE`` row lock.
"""

from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from ride_escrow.config import settings


def engine_options(url: str) -> dict[str, Any]:
    if url.startswith("sqlite"):
        return {"echo": settings.db_echo}
    return {
        "echo": settings.db_echo,
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "pool_pre_ping": True,
    }


def serialize_sqlite_writes(async_engine: AsyncEngine) -> AsyncEngine:
    """Make each SQLite transaction take the write lock when it begins."""

    @event.listens_for(async_engine.sync_engine, "connect")
    def _no_implicit_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(async_engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return async_engine


engine = create_async_engine(settings.database_url, **engine_options(settings.database_url))
if settings.database_url.startswith("sqlite"):
    serialize_sqlite_writes(engine)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Shared declarative base for all ORM models."""

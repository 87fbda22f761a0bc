"""SQLAlchemy base, async engine setup, UIntText type, and SQLite pragmas."""

from __future__ import annotations

import functools
from typing import Any

from sqlalchemy import event, text
from sqlalchemy.engine import Engine
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.types import String, TypeDecorator

DEFAULT_BUSY_TIMEOUT_MS = 5000

IMMUTABILITY_TRIGGERS = (
    "CREATE TRIGGER IF NOT EXISTS no_update_escrow_event "
    "BEFORE UPDATE ON escrow_event "
    "BEGIN SELECT RAISE(ABORT, 'escrow_event is immutable'); END;",
    "CREATE TRIGGER IF NOT EXISTS no_delete_escrow_event "
    "BEFORE DELETE ON escrow_event "
    "BEGIN SELECT RAISE(ABORT, 'escrow_event is immutable'); END;",
)


class UIntText(TypeDecorator[int]):
    """Store unsigned 256-bit integers as canonical decimal TEXT.

    SQLite INTEGER is 64-bit signed; order ids, nonces and amounts can
    be up to 2**256 - 1. The canonical form (no sign, no leading zeros)
    keeps equality and uniqueness exact.
    """

    impl = String
    cache_ok = True

    def process_bind_param(
        self,
        value: int | None,
        dialect: Any,
    ) -> str | None:
        if value is None:
            return None
        return str(int(value))

    def process_result_value(
        self,
        value: str | None,
        dialect: Any,
    ) -> int | None:
        if value is None:
            return None
        return int(value)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


def set_sqlite_pragmas(
    dbapi_connection: Any,
    connection_record: Any,
    busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS,
) -> None:
    """Set SQLite pragmas on every new connection.

    Must be registered via register_engine_events() or called manually
    for each connection. SQLite pragmas are per-connection, not
    per-database, so they must be set every time.
    """
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute(f"PRAGMA busy_timeout={int(busy_timeout_ms)}")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def register_engine_events(
    engine: Engine,
    busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS,
) -> None:
    """Register SQLite pragma listener on an engine."""
    event.listen(
        engine,
        "connect",
        functools.partial(set_sqlite_pragmas, busy_timeout_ms=busy_timeout_ms),
    )


async def create_schema(engine: AsyncEngine) -> None:
    """Create all tables plus the audit-table triggers.

    Used for in-memory databases and ``init-db``; file databases managed
    by Alembic get the same schema from migration 001.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        for ddl in IMMUTABILITY_TRIGGERS:
            await conn.execute(text(ddl))

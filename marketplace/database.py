"""
Marketplace Backend — Database Engine & Constraint Classification
==================================================================

What:  Async SQLAlchemy engine/session factory builders, the declarative Base,
       and helpers that classify IntegrityError into unique / foreign-key
       violations.
Why:   The write orchestrator maps constraint violations to domain errors
       ("category not found", "duplicate provider") and needs a driver-neutral
       way to tell them apart.
How:   Engines are built from Settings by the AppContext; nothing here is a
       module-level singleton. PostgreSQL reports SQLSTATE codes (23505 unique,
       23503 foreign key); SQLite only reports message text, so both are checked.

Connection Pooling Strategy:
    pool_size=25, max_overflow=0:  at most 25 open connections
    pool_recycle=900:              idle connections are replaced after 15 minutes
    pool_pre_ping:                 stale connections are detected before use
    command_timeout=3:             every statement is bounded by asyncpg
"""

from typing import Optional

from sqlalchemy import event
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from marketplace.config import Settings

UNIQUE_VIOLATION = "23505"
FOREIGN_KEY_VIOLATION = "23503"


class Base(DeclarativeBase):
    """Base class for all ORM models; its metadata is what Alembic tracks."""
    pass


# ── Engine Configuration ──────────────────────────────────────────────────
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    # SQLite ignores FOREIGN KEY clauses unless the pragma is set per connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_engine(settings: Settings) -> AsyncEngine:
    """
    Build the async engine for the configured database.

    SQLite engines (tests, local tinkering) skip pool sizing, which their
    pool classes do not accept, and switch foreign keys on.
    """
    if settings.is_sqlite:
        engine = create_async_engine(
            settings.database_url,
            echo=settings.log_level == "DEBUG",
            connect_args={"timeout": settings.db_statement_timeout + 2},
        )
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
        return engine

    return create_async_engine(
        settings.database_url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=settings.db_pool_pre_ping,
        pool_recycle=settings.db_pool_recycle,
        connect_args={"command_timeout": settings.db_statement_timeout},
        echo=settings.log_level == "DEBUG",
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # expire_on_commit=False: committed rows are still readable when the
    # handler serializes them after the transaction closed
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


# ── Constraint Classification ─────────────────────────────────────────────
def _sqlstate(exc: IntegrityError) -> Optional[str]:
    orig = exc.orig
    for candidate in (orig, getattr(orig, "__cause__", None)):
        if candidate is None:
            continue
        code = getattr(candidate, "sqlstate", None) or getattr(candidate, "pgcode", None)
        if code:
            return str(code)
    return None


def is_unique_violation(exc: IntegrityError) -> bool:
    code = _sqlstate(exc)
    if code is not None:
        return code == UNIQUE_VIOLATION
    return "UNIQUE constraint failed" in str(exc.orig)


def is_foreign_key_violation(exc: IntegrityError) -> bool:
    code = _sqlstate(exc)
    if code is not None:
        return code == FOREIGN_KEY_VIOLATION
    return "FOREIGN KEY constraint failed" in str(exc.orig)

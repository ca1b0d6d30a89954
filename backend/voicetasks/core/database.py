"""SQLite engine, sessions and lock-tolerant commits.

The task list is small but written from several places at once (API
requests, voice commands, Microsoft sync), so the engine runs SQLite in WAL
mode and commits go through retry_db_operation(), which backs off when
SQLite reports "database is locked".
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, TypeVar

import structlog
from sqlalchemy import event
from sqlalchemy.exc import OperationalError, PendingRollbackError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlmodel.ext.asyncio.session import AsyncSession as SQLModelAsyncSession

from voicetasks.core import metrics

logger = structlog.get_logger("voicetasks.database")

T = TypeVar("T")

POOL_SIZE = 10
MAX_OVERFLOW = 20
LOCK_TIMEOUT_SECONDS = 30.0

SQLITE_PRAGMAS = (
    "PRAGMA journal_mode=WAL",
    "PRAGMA synchronous=NORMAL",
    "PRAGMA foreign_keys=ON",
)


def _apply_pragmas(dbapi_conn: Any, connection_record: Any) -> None:
    cursor = dbapi_conn.cursor()
    try:
        for pragma in SQLITE_PRAGMAS:
            cursor.execute(pragma)
    finally:
        cursor.close()


def _track_pool(engine: AsyncEngine) -> None:
    """Mirror pool usage into the connection gauges on every checkout/checkin."""
    pool = engine.sync_engine.pool

    def record(*_: Any) -> None:
        checked_out = pool.checkedout()  # type: ignore[attr-defined]
        metrics.db_connections_active.set(checked_out)
        metrics.db_connections_idle.set(pool.checkedin())  # type: ignore[attr-defined]
        metrics.db_connections_overflow.set(max(0, checked_out - POOL_SIZE))

    event.listen(engine.sync_engine, "checkout", record)
    event.listen(engine.sync_engine, "checkin", record)


def create_database_engine(database_file: Path, echo: bool = False) -> AsyncEngine:
    """Async engine for the task database at database_file.

    Args:
        database_file: SQLite file; created on first connect
        echo: Log every SQL statement

    Returns:
        AsyncEngine with WAL mode and pool metrics enabled
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{database_file}",
        echo=echo,
        connect_args={"timeout": LOCK_TIMEOUT_SECONDS},
        pool_pre_ping=True,
        pool_size=POOL_SIZE,
        max_overflow=MAX_OVERFLOW,
    )
    event.listen(engine.sync_engine, "connect", _apply_pragmas)
    _track_pool(engine)

    metrics.db_pool_size.set(POOL_SIZE)
    metrics.db_pool_max_overflow.set(MAX_OVERFLOW)

    logger.info("Database engine created", database_file=str(database_file), echo=echo)
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[SQLModelAsyncSession]:
    # Objects stay usable after commit; async sessions cannot lazy-load
    return async_sessionmaker(engine, class_=SQLModelAsyncSession, expire_on_commit=False)


async def create_tables(engine: AsyncEngine) -> None:
    """Create missing tables for every model in voicetasks.db."""
    from voicetasks.db import metadata

    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)

    logger.info("Database tables ensured", tables=sorted(metadata.tables))


def _is_lock_error(exc: SQLAlchemyError) -> bool:
    return isinstance(exc, OperationalError) and "locked" in str(exc).lower()


async def retry_db_operation(
    operation: Callable[[], Awaitable[T]],
    session: SQLModelAsyncSession | None = None,
    max_retries: int = 5,
    retry_delay: float = 0.1,
    operation_type: str = "unknown",
) -> T:
    """Await operation(), retrying on SQLite lock errors.

    The delay doubles after every failed attempt. When a session is given it
    is rolled back between attempts, which also makes a PendingRollbackError
    retryable. Any other error is raised immediately.

    Args:
        operation: Zero-argument callable returning an awaitable, e.g. session.commit
        session: Session to roll back between attempts
        max_retries: Total number of attempts
        retry_delay: Delay before the second attempt, in seconds
        operation_type: Metrics label ("insert", "update", ...)

    Returns:
        The operation's result
    """
    started = time.monotonic()
    attempt = 0

    while True:
        try:
            result = await operation()
        except (OperationalError, PendingRollbackError) as exc:
            locked = _is_lock_error(exc)
            retryable = locked or (isinstance(exc, PendingRollbackError) and session is not None)
            attempt += 1

            if not retryable or attempt >= max_retries:
                if attempt > 1:
                    metrics.db_retries_failed_total.labels(operation_type=operation_type).inc()
                    metrics.db_retry_duration_seconds.labels(operation_type=operation_type).observe(
                        time.monotonic() - started
                    )
                logger.error(
                    "Database operation failed",
                    operation_type=operation_type,
                    attempts=attempt,
                    error=str(exc)[:200],
                )
                raise

            if locked:
                metrics.db_lock_errors_total.inc()
            metrics.db_retry_attempts_total.labels(operation_type=operation_type).inc()
            logger.debug(
                "Database busy, retrying",
                operation_type=operation_type,
                attempt=attempt,
                max_retries=max_retries,
            )

            if session is not None:
                try:
                    await session.rollback()
                except SQLAlchemyError as rollback_exc:
                    logger.debug("Rollback before retry failed", error=str(rollback_exc)[:100])

            await asyncio.sleep(retry_delay * 2 ** (attempt - 1))
            continue

        if attempt > 0:
            metrics.db_retries_succeeded_total.labels(operation_type=operation_type).inc()
            metrics.db_retry_duration_seconds.labels(operation_type=operation_type).observe(
                time.monotonic() - started
            )
        return result

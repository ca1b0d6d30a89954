"""Tests for database setup and retry handling."""

from __future__ import annotations

from collections.abc import AsyncIterator
from pathlib import Path

import pytest
from sqlalchemy import inspect
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine

from voicetasks.core.database import create_database_engine, create_tables, retry_db_operation
from voicetasks.core.metrics import (
    db_lock_errors_total,
    db_pool_size,
    db_retries_failed_total,
    db_retries_succeeded_total,
)


@pytest.fixture
async def temp_db_engine(tmp_path: Path) -> AsyncIterator[AsyncEngine]:
    """Create a temporary database engine for testing."""
    engine = create_database_engine(tmp_path / "test.db", echo=False)
    yield engine
    await engine.dispose()


async def test_create_tables(temp_db_engine: AsyncEngine) -> None:
    await create_tables(temp_db_engine)
    # Second call is a no-op
    await create_tables(temp_db_engine)

    async with temp_db_engine.connect() as conn:
        tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())

    assert {"tasks", "activities", "voice_commands", "microsoft_config"} <= set(tables)


async def test_wal_mode_enabled(temp_db_engine: AsyncEngine) -> None:
    async with temp_db_engine.connect() as conn:
        result = await conn.exec_driver_sql("PRAGMA journal_mode")
        assert result.scalar() == "wal"


async def test_pool_size_recorded(temp_db_engine: AsyncEngine) -> None:
    assert db_pool_size._value.get() == 10


async def test_retry_operation_success_first_try() -> None:
    call_count = 0

    async def successful_operation() -> str:
        nonlocal call_count
        call_count += 1
        return "success"

    assert await retry_db_operation(successful_operation, operation_type="test") == "success"
    assert call_count == 1


async def test_retry_operation_recovers_from_lock() -> None:
    call_count = 0
    locks_before = db_lock_errors_total._value.get()
    succeeded_before = db_retries_succeeded_total.labels(operation_type="test_lock")._value.get()

    async def failing_operation() -> str:
        nonlocal call_count
        call_count += 1
        if call_count < 2:
            raise OperationalError("statement", "parameters", Exception("database is locked"))
        return "success"

    result = await retry_db_operation(
        failing_operation,
        max_retries=3,
        retry_delay=0.01,
        operation_type="test_lock",
    )

    assert result == "success"
    assert call_count == 2
    assert db_lock_errors_total._value.get() == locks_before + 1
    assert (
        db_retries_succeeded_total.labels(operation_type="test_lock")._value.get()
        == succeeded_before + 1
    )


async def test_retry_operation_gives_up() -> None:
    failed_before = db_retries_failed_total.labels(operation_type="test_failed")._value.get()

    async def always_failing_operation() -> str:
        raise OperationalError("statement", "parameters", Exception("database is locked"))

    with pytest.raises(OperationalError):
        await retry_db_operation(
            always_failing_operation,
            max_retries=2,
            retry_delay=0.01,
            operation_type="test_failed",
        )

    assert (
        db_retries_failed_total.labels(operation_type="test_failed")._value.get()
        == failed_before + 1
    )


async def test_retry_operation_does_not_retry_other_errors() -> None:
    call_count = 0

    async def broken_operation() -> None:
        nonlocal call_count
        call_count += 1
        raise OperationalError("statement", "parameters", Exception("no such table: tasks"))

    with pytest.raises(OperationalError):
        await retry_db_operation(broken_operation, max_retries=3, retry_delay=0.01)

    assert call_count == 1

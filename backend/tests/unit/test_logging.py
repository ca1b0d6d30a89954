"""Tests for logging functionality."""

from __future__ import annotations

import io
import json
import logging
import sys
from pathlib import Path

import structlog

from voicetasks.core.logging import (
    ExcInfo,
    format_exception_for_json,
    setup_logging,
)


def _json_lines(output: str) -> list[dict]:
    return [json.loads(line) for line in output.strip().split("\n") if line.strip().startswith("{")]


def test_format_exception_for_json_with_exception() -> None:
    """Test format_exception_for_json with a real exception."""
    try:
        raise ValueError("Test error message")
    except ValueError:
        exc_info: ExcInfo = sys.exc_info()  # type: ignore[assignment]

    result = format_exception_for_json(exc_info)

    assert result["exception_type"] == "ValueError"
    assert result["exception_message"] == "Test error message"
    assert result["exception_module"] == "builtins"
    assert isinstance(result["traceback_frames"], list)
    assert len(result["traceback_frames"]) > 0

    frame = result["traceback_frames"][0]
    assert isinstance(frame["filename"], str)
    assert isinstance(frame["lineno"], int)
    assert isinstance(frame["function"], str)

    assert "ValueError: Test error message" in result["traceback_text"]


def test_format_exception_for_json_with_none() -> None:
    assert format_exception_for_json(None) == {}
    assert format_exception_for_json((None, None, None)) == {}


def test_setup_logging_debug_mode() -> None:
    """Console rendering in debug mode should not crash."""
    setup_logging(debug=True)

    structlog.get_logger("test.logger").info("Test message", key="value")


def test_exception_logging_in_json() -> None:
    """Test that exceptions are logged in structured JSON format."""
    old_stdout = sys.stdout
    sys.stdout = io.StringIO()

    try:
        setup_logging(debug=False)
        logger = structlog.get_logger("test.logger")

        try:
            raise ValueError("Test error")
        except ValueError:
            logger.exception("An error occurred", extra="context")

        log_data = _json_lines(sys.stdout.getvalue())[-1]

        assert log_data["event"] == "An error occurred"
        assert log_data["exception"]["exception_type"] == "ValueError"
        assert log_data["exception"]["exception_message"] == "Test error"
        assert "ValueError: Test error" in log_data["exception_summary"]
    finally:
        sys.stdout = old_stdout


def test_logging_with_trace_id() -> None:
    """Test that logging includes trace_id from context."""
    old_stdout = sys.stdout
    sys.stdout = io.StringIO()

    try:
        setup_logging(debug=False)
        structlog.contextvars.bind_contextvars(trace_id="test-trace-123")

        structlog.get_logger("test.logger").info("Test message", key="value")

        log_data = _json_lines(sys.stdout.getvalue())[-1]
        assert log_data["trace_id"] == "test-trace-123"
        assert log_data["key"] == "value"
    finally:
        sys.stdout = old_stdout
        structlog.contextvars.clear_contextvars()


def test_file_logging_splits_application_database_and_http_logs(tmp_path: Path) -> None:
    logs_dir = tmp_path / "logs"
    setup_logging(debug=False, logs_dir=logs_dir)

    structlog.get_logger("voicetasks.test").info("Application event")
    logging.getLogger("httpx").warning("HTTP warning")
    logging.getLogger("sqlalchemy.engine").warning("Database warning")

    for handler in logging.getLogger().handlers:
        handler.flush()

    app_log = (logs_dir / "voicetasks.json.log").read_text(encoding="utf-8")
    http_log = (logs_dir / "voicetasks.http.json.log").read_text(encoding="utf-8")
    db_log = (logs_dir / "voicetasks.db.json.log").read_text(encoding="utf-8")

    assert "Application event" in app_log
    assert "HTTP warning" in http_log
    assert "HTTP warning" not in app_log
    assert "Database warning" in db_log

    # Restore console logging for the remaining tests
    setup_logging(debug=False)

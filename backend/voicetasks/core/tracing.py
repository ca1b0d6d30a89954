"""Trace IDs and other per-request logging context.

Values are kept in structlog's contextvars, so every log line written while
handling a request (or a voice command) carries them automatically.
"""

from __future__ import annotations

import uuid
from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

from structlog import contextvars

TRACE_HEADER = "X-Trace-ID"


def generate_trace_id() -> str:
    return uuid.uuid4().hex


def get_trace_id() -> str | None:
    return contextvars.get_contextvars().get("trace_id")


def set_trace_id(trace_id: str) -> None:
    contextvars.bind_contextvars(trace_id=trace_id)


def clear_trace_id() -> None:
    """Drop the trace ID and everything else bound to the context."""
    contextvars.clear_contextvars()


@contextmanager
def trace_context(trace_id: str | None = None, **bound: Any) -> Generator[str]:
    """Bind a trace ID (generated when not given) and extra values for the block.

    Whatever was bound before is restored on exit, so trace contexts nest.

    Example:
        >>> with trace_context(voice_command_id=12) as trace_id:
        ...     logger.info("Interpreting")  # carries trace_id and voice_command_id
    """
    trace_id = trace_id or generate_trace_id()
    tokens = contextvars.bind_contextvars(trace_id=trace_id, **bound)
    try:
        yield trace_id
    finally:
        contextvars.reset_contextvars(**tokens)


@contextmanager
def bound_context(**values: Any) -> Generator[None]:
    """Add values to the current context (trace ID kept) for the block."""
    tokens = contextvars.bind_contextvars(**values)
    try:
        yield
    finally:
        contextvars.reset_contextvars(**tokens)

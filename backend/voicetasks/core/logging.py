"""Structured logging for voicetasks.

Application events go through structlog. Library loggers (SQLAlchemy, httpx,
openai, uvicorn) stay on the standard library and are routed to their own
handlers so that request logs are not buried under driver noise.
"""

from __future__ import annotations

import json
import linecache
import logging
import sys
import traceback
from collections.abc import Iterator
from datetime import UTC, datetime
from pathlib import Path
from types import TracebackType
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from structlog.types import EventDict

ExcInfo = tuple[type[BaseException] | None, BaseException | None, TracebackType | None]

APP_LOG_FILE = "voicetasks.json.log"
DATABASE_LOG_FILE = "voicetasks.db.json.log"
HTTP_LOG_FILE = "voicetasks.http.json.log"

DATABASE_LOGGERS = ("sqlalchemy", "sqlalchemy.engine", "sqlalchemy.pool", "aiosqlite")
# openai logs its retries through httpx as well
HTTP_LOGGERS = ("httpx", "httpcore", "openai")
SERVER_LOGGERS = ("uvicorn", "uvicorn.access", "uvicorn.error")


def _frames(tb: TracebackType | None) -> Iterator[dict[str, Any]]:
    while tb is not None:
        code = tb.tb_frame.f_code
        frame: dict[str, Any] = {
            "filename": code.co_filename,
            "lineno": tb.tb_lineno,
            "function": code.co_name,
        }
        source = linecache.getline(code.co_filename, tb.tb_lineno).strip()
        if source:
            frame["source_line"] = source
        yield frame
        tb = tb.tb_next


def format_exception_for_json(exc_info: ExcInfo | None) -> dict[str, Any]:
    """Break an exception into JSON-friendly fields.

    Returns an empty dict when there is no exception. Otherwise the result has
    exception_type, exception_message and exception_module, plus
    traceback_frames and traceback_text when a traceback is attached.
    """
    if not exc_info or exc_info[0] is None:
        return {}

    exc_type, exc_value, exc_tb = exc_info
    details: dict[str, Any] = {
        "exception_type": exc_type.__name__,
        "exception_message": str(exc_value) if exc_value is not None else None,
        "exception_module": exc_type.__module__,
    }
    if exc_tb is not None:
        details["traceback_frames"] = list(_frames(exc_tb))
        details["traceback_text"] = "".join(traceback.format_exception(exc_type, exc_value, exc_tb))
    return details


def exception_processor(
    logger: structlog.BoundLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Replace exc_info (or an exception object) with structured fields."""
    exc_info = event_dict.pop("exc_info", None)
    if exc_info is True:
        exc_info = sys.exc_info()
    elif isinstance(exc_info, BaseException):
        exc_info = (type(exc_info), exc_info, exc_info.__traceback__)

    raw = event_dict.get("exception")
    if not exc_info and isinstance(raw, BaseException):
        exc_info = (type(raw), raw, raw.__traceback__)

    details = format_exception_for_json(exc_info)  # type: ignore[arg-type]
    if details:
        event_dict["exception"] = details
        if details["exception_message"]:
            event_dict["exception_summary"] = (
                f"{details['exception_type']}: {details['exception_message']}"
            )
    return event_dict


class JSONFormatter(logging.Formatter):
    """One JSON object per line for standard library records.

    The bound structlog context (trace_id, voice_command_id) is included so
    that driver and HTTP client lines can be joined with the request that
    caused them.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC)
            .isoformat()
            .replace("+00:00", "Z"),
            "level": record.levelname.lower(),
            "logger": record.name,
            "event": record.getMessage(),
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
        }
        entry.update(structlog.contextvars.get_contextvars())
        if record.exc_info:
            entry["exception"] = format_exception_for_json(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


def _attach(names: tuple[str, ...], handler: logging.Handler, level: int) -> None:
    """Make the named loggers write to handler only."""
    for name in names:
        target = logging.getLogger(name)
        for old in list(target.handlers):
            target.removeHandler(old)
            old.close()
        target.addHandler(handler)
        target.setLevel(level)
        target.propagate = False


def _detach(names: tuple[str, ...]) -> None:
    """Send the named loggers back through the root logger."""
    for name in names:
        target = logging.getLogger(name)
        for old in list(target.handlers):
            target.removeHandler(old)
            old.close()
        target.setLevel(logging.NOTSET)
        target.propagate = True


def _json_file_handler(path: Path) -> logging.FileHandler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(JSONFormatter())
    return handler


def setup_logging(debug: bool = False, logs_dir: Path | None = None) -> None:
    """Configure structlog and the standard library loggers.

    Without logs_dir everything goes to stdout: JSON lines, or a coloured
    console renderer in debug mode. With logs_dir, application events go to
    voicetasks.json.log, database logs to voicetasks.db.json.log and HTTP
    client logs to voicetasks.http.json.log. Uvicorn always stays on stdout.

    Args:
        debug: Log at DEBUG and include SQLAlchemy INFO output
        logs_dir: Directory for JSON log files
    """
    level = logging.DEBUG if debug else logging.INFO
    database_level = logging.INFO if debug else logging.WARNING

    console = logging.StreamHandler(sys.stdout)
    app_handler: logging.Handler = console
    to_file = False

    _detach(DATABASE_LOGGERS + HTTP_LOGGERS)
    if logs_dir is not None:
        try:
            logs_dir.mkdir(parents=True, exist_ok=True)
            app_handler = logging.FileHandler(logs_dir / APP_LOG_FILE, encoding="utf-8")
            _attach(DATABASE_LOGGERS, _json_file_handler(logs_dir / DATABASE_LOG_FILE), database_level)
            _attach(HTTP_LOGGERS, _json_file_handler(logs_dir / HTTP_LOG_FILE), logging.WARNING)
            to_file = True
        except OSError as exc:
            sys.stderr.write(f"voicetasks: file logging disabled ({exc})\n")
            app_handler = console

    logging.basicConfig(format="%(message)s", level=level, handlers=[app_handler], force=True)
    _attach(SERVER_LOGGERS, console, level)

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]
    if debug and not to_file:
        # The console renderer prints tracebacks from exc_info itself
        processors.append(structlog.dev.ConsoleRenderer(colors=True))
    else:
        processors += [exception_processor, structlog.processors.JSONRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    structlog.get_logger("voicetasks.logging").info(
        "Logging configured",
        level=logging.getLevelName(level),
        log_files=[APP_LOG_FILE, DATABASE_LOG_FILE, HTTP_LOG_FILE] if to_file else [],
    )

"""Service information and health routes."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from voicetasks.core.config import APP_VERSION
from voicetasks.core.tracing import get_trace_id

router = APIRouter(prefix="/api")
logger = structlog.get_logger("voicetasks.routes.general")


@router.get("/")
async def root() -> dict[str, Any]:
    """Name and version of the running service."""
    return {
        "message": "Hello, voicetasks!",
        "version": APP_VERSION,
        "status": "ok",
        "trace_id": get_trace_id(),
    }


@router.get("/health")
async def health(request: Request) -> JSONResponse:
    """Liveness plus a database round trip; 503 when the database is unreachable."""
    body: dict[str, Any] = {"status": "healthy", "database": "ok", "trace_id": get_trace_id()}

    try:
        async with request.app.state.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.error("Health check failed", error=str(exc))
        body.update(status="unhealthy", database="unavailable")
        return JSONResponse(body, status_code=status.HTTP_503_SERVICE_UNAVAILABLE)

    return JSONResponse(body)

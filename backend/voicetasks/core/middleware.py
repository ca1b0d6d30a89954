"""Request middleware."""

from __future__ import annotations

import time

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from voicetasks.core.tracing import TRACE_HEADER, trace_context

logger = structlog.get_logger("voicetasks.middleware")


class TracingMiddleware(BaseHTTPMiddleware):
    """Runs each request inside a trace context and echoes the ID in X-Trace-ID.

    A trace ID sent by the client (e.g. the voice front end) is reused, so a
    spoken command can be followed from browser to database log.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        with trace_context(request.headers.get(TRACE_HEADER)) as trace_id:
            started = time.perf_counter()
            response = await call_next(request)
            response.headers[TRACE_HEADER] = trace_id
            logger.debug(
                "Request handled",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 1),
            )
            return response

"""
Trace ID Middleware

Adds a correlation ID to every request and binds it into structlog's
contextvars so every log line emitted while serving the request carries it,
including lines from concurrent provider/region sub-calls.
"""

import uuid
from contextvars import ContextVar
from typing import Optional
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
import structlog

_trace_id_var: ContextVar[Optional[str]] = ContextVar("trace_id", default=None)

logger = structlog.get_logger()


def get_current_trace_id() -> Optional[str]:
    """Get the current trace ID from context."""
    return _trace_id_var.get()


def generate_trace_id() -> str:
    return str(uuid.uuid4())[:8]


class TraceIdMiddleware(BaseHTTPMiddleware):
    """
    - Accepts an existing trace ID from the X-Trace-Id header
    - Generates a new one if none provided
    - Echoes it in the response headers
    """

    async def dispatch(self, request: Request, call_next):
        trace_id = request.headers.get("X-Trace-Id") or generate_trace_id()
        _trace_id_var.set(trace_id)
        request.state.trace_id = trace_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(trace_id=trace_id)

        logger.info("request_start", method=request.method, path=request.url.path)

        try:
            response = await call_next(request)
            response.headers["X-Trace-Id"] = trace_id
            logger.info("request_end", status_code=response.status_code)
            return response
        except Exception as e:
            logger.error("request_error", error=str(e))
            raise

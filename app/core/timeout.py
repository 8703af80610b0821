"""
Request Timeout Middleware for CloudLedger

Caps total request duration so a slow provider cannot pin a worker.
Sub-call timeouts degrade individual providers/regions; this is the outer bound.
"""

import asyncio
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
import structlog

from app.core.tracing import get_current_trace_id

logger = structlog.get_logger()

DEFAULT_TIMEOUT_SECONDS = 300

# Scrapes and liveness checks are never slow enough to cap
UNCAPPED_PATHS = {"/health", "/metrics"}


class TimeoutMiddleware(BaseHTTPMiddleware):
    """Cancels engine requests that run past ``timeout_seconds`` with a 504 failure envelope."""

    def __init__(self, app, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS):
        super().__init__(app)
        self.timeout_seconds = timeout_seconds

    async def dispatch(self, request: Request, call_next):
        if request.url.path in UNCAPPED_PATHS:
            return await call_next(request)

        try:
            return await asyncio.wait_for(call_next(request), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            trace_id = get_current_trace_id()
            logger.warning(
                "request_timeout",
                path=request.url.path,
                timeout_seconds=self.timeout_seconds,
            )
            response = JSONResponse(
                status_code=504,
                content={
                    "success": False,
                    "error": "gateway_timeout",
                    "message": f"{request.method} {request.url.path} exceeded {self.timeout_seconds:g}s",
                },
            )
            if trace_id:
                response.headers["X-Trace-Id"] = trace_id
            return response

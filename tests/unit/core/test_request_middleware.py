"""
Tests for request middleware

1. TraceIdMiddleware
2. TimeoutMiddleware
"""

import asyncio

from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.core.timeout import TimeoutMiddleware
from app.core.tracing import TraceIdMiddleware


class TestTraceIdMiddleware:
    def test_generates_trace_id(self):
        app = FastAPI()
        app.add_middleware(TraceIdMiddleware)

        @app.get("/ping")
        async def ping():
            return {"status": "ok"}

        response = TestClient(app).get("/ping")

        assert response.status_code == 200
        assert len(response.headers["x-trace-id"]) == 8

    def test_echoes_incoming_trace_id(self):
        app = FastAPI()
        app.add_middleware(TraceIdMiddleware)

        @app.get("/ping")
        async def ping():
            return {"status": "ok"}

        response = TestClient(app).get("/ping", headers={"X-Trace-Id": "abc123"})

        assert response.headers["x-trace-id"] == "abc123"


class TestTimeoutMiddleware:
    def test_slow_request_returns_504(self):
        app = FastAPI()
        app.add_middleware(TimeoutMiddleware, timeout_seconds=0.05)

        @app.get("/slow")
        async def slow():
            await asyncio.sleep(1)
            return {"status": "late"}

        response = TestClient(app).get("/slow")

        assert response.status_code == 504
        assert response.json()["error"] == "gateway_timeout"

    def test_fast_request_passes(self):
        app = FastAPI()
        app.add_middleware(TimeoutMiddleware, timeout_seconds=5)

        @app.get("/fast")
        async def fast():
            return {"status": "ok"}

        assert TestClient(app).get("/fast").json() == {"status": "ok"}

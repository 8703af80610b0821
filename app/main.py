from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator

from app.api.v1.audit import router as audit_router
from app.api.v1.connections import router as connections_router
from app.api.v1.costs import router as costs_router
from app.api.v1.efficiency import router as efficiency_router
from app.api.v1.forecast import router as forecast_router
from app.api.v1.trends import router as trends_router
from app.core.config import get_settings
from app.core.exceptions import CostEngineError
from app.core.logging import setup_logging
from app.core.timeout import TimeoutMiddleware
from app.core.tracing import TraceIdMiddleware

# Configure logging
setup_logging()

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logger.info("app_starting", app=settings.APP_NAME, version=settings.VERSION)
    yield
    logger.info("app_stopping", app=settings.APP_NAME)


settings = get_settings()

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.VERSION,
    lifespan=lifespan)

# Initialize Prometheus Metrics
Instrumentator().instrument(app).expose(app)

app.add_middleware(TimeoutMiddleware, timeout_seconds=settings.REQUEST_TIMEOUT_SECONDS)
app.add_middleware(TraceIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _failure(status_code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": error, "message": message})


@app.exception_handler(CostEngineError)
async def cost_engine_error_handler(request: Request, exc: CostEngineError):
    logger.warning("request_failed", path=request.url.path, code=exc.code, error=exc.message)
    return _failure(exc.status_code, exc.code, exc.message)


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    message = "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
    )
    return _failure(422, "validation_error", message)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("request_unhandled_error", path=request.url.path)
    return _failure(500, "internal_error", str(exc) or type(exc).__name__)


# Include routers
app.include_router(forecast_router, prefix="/api/v1")
app.include_router(trends_router, prefix="/api/v1")
app.include_router(costs_router, prefix="/api/v1")
app.include_router(audit_router, prefix="/api/v1")
app.include_router(efficiency_router, prefix="/api/v1")
app.include_router(connections_router, prefix="/api/v1")


@app.get("/health")
async def health_check():
    return {
        "status": "active",
        "app": settings.APP_NAME,
        "version": settings.VERSION,
    }

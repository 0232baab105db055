"""
FastAPI application for pixdrop.

Mounts the job submission and download routers and wires logging,
telemetry, rate limiting, authentication and error rendering.

Usage:
    uvicorn app.main:app --reload --port 8000
"""

import psycopg
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from app.downloads.routes import router as downloads_router
from app.jobs.routes import router as jobs_router
from pixdrop_core.auth.middleware import AuthMiddleware
from pixdrop_core.config import settings
from pixdrop_core.infrastructure.rate_limiter import _rate_limit_exceeded_handler, limiter
from pixdrop_core.infrastructure.telemetry import TelemetryService, setup_telemetry
from pixdrop_core.logging import setup_logging
from pixdrop_core.runtime.errors import ErrorCode, ServiceError

# Initialize logging
setup_logging()

# Initialize Telemetry (Tracing)
setup_telemetry()

app = FastAPI(
    title="Pixdrop",
    description="Image compression, resizing, cropping and conversion with expiring download links",
    version="1.0.0",
)

# Instrument FastAPI app
TelemetryService().instrument_app(app)

# Rate limiter setup
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

# Bearer tokens are optional; invalid ones are rejected here
app.add_middleware(AuthMiddleware)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    """Render service errors as JSON with their HTTP status."""
    if exc.status_code >= 500:
        logger.opt(exception=exc.cause).error(
            f"[{exc.debug_id}] {request.method} {request.url.path} failed: {exc!r} {exc.message_debug or ''}"
        )
    else:
        logger.info(f"[{exc.debug_id}] {request.method} {request.url.path} -> {exc.status_code} {exc.code}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(psycopg.Error)
async def database_error_handler(request: Request, exc: psycopg.Error):
    """Database errors that escaped the stores become a generic 500."""
    error = ServiceError(
        code=ErrorCode.STORAGE_UNAVAILABLE,
        message_safe="Job storage temporarily unavailable",
        cause=exc,
    )
    logger.error(f"[{error.debug_id}] Database error on {request.url.path}: {type(exc).__name__}: {exc}")
    return JSONResponse(status_code=500, content=error.to_dict())


# CORS configuration for frontend development
# NOTE: CORS must be the last middleware added so it runs FIRST
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",  # Vite dev server
        "http://localhost:3000",
        "http://127.0.0.1:5173",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
)


app.include_router(jobs_router, tags=["Jobs"])
app.include_router(downloads_router, tags=["Downloads"])


@app.get("/health")
def health():
    """
    Health check endpoint.

    Returns:
        dict: Status and service information.
    """
    return {"status": "ok", "service": settings.SERVICE_NAME, "version": "1.0.0"}

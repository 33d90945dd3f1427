"""
Tubely FastAPI Application

Entry point for the Tubely media ingestion API. It provides:

- ``create_app()``: application factory wiring settings, middleware, error
  handling, the /api/v1 routers and static serving of local assets
- A lifespan that configures logging, connects MongoDB, creates the S3 client
  and prepares the assets directory, then closes MongoDB on shutdown
- Request logging middleware adding X-Request-ID and X-Process-Time headers
- A single JSON error envelope, ``{"error": "<message>"}``, for every failure

API Structure:
    /api/v1/videos/{video_id}/thumbnail  - thumbnail image upload
    /api/v1/videos/{video_id}/video      - video file upload
    /assets/{key}                        - locally stored thumbnails
    /health                              - liveness probe
    /ready                               - readiness check (MongoDB ping)

Usage:
    # Run with uvicorn directly
    uvicorn tubely.main:app --host 0.0.0.0 --port 8091

    # Run the installed console script
    tubely
"""

import logging
import os
import time
import uuid

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

import uvicorn

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from tubely import __version__
from tubely.api.v1 import api_router
from tubely.config import Settings, get_settings
from tubely.core.database import init_db
from tubely.core.errors import TubelyError
from tubely.core.storage import StorageClient
from tubely.utils.logger import setup_logging


logger = logging.getLogger(__name__)

HTTP_ERROR_THRESHOLD = 400


# =============================================================================
# Application Lifespan Management
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Startup: configure logging, prepare the assets root, connect MongoDB and
    create the S3 client. Shutdown: close MongoDB.
    """
    settings: Settings = app.state.settings

    setup_logging(log_level=settings.log_level, json_logs=settings.json_logs)
    logger.info(
        "%s API starting",
        settings.app_name,
        extra={"app_env": settings.app_env, "host": settings.host, "port": settings.port},
    )

    os.makedirs(settings.assets_root, exist_ok=True)
    if settings.staging_dir:
        os.makedirs(settings.staging_dir, exist_ok=True)

    app.state.db = await init_db(settings)
    app.state.storage_client = StorageClient(settings)

    logger.info("%s API ready to accept requests", settings.app_name)

    yield

    logger.info("%s API shutting down", settings.app_name)
    await app.state.db.close()


# =============================================================================
# Middleware
# =============================================================================


async def request_logging_middleware(request: Request, call_next) -> Response:
    """
    Log each request with its status and duration.

    Adds X-Request-ID (echoing the caller's when given) and X-Process-Time
    headers to the response.
    """
    request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
    start_time = time.perf_counter()

    try:
        response = await call_next(request)
    except Exception:
        logger.exception(
            "Request failed: %s %s",
            request.method,
            request.url.path,
            extra={"request_id": request_id},
        )
        raise

    process_time_ms = round((time.perf_counter() - start_time) * 1000, 2)
    response.headers["X-Process-Time"] = f"{process_time_ms}ms"
    response.headers["X-Request-ID"] = request_id

    log_level = logging.INFO if response.status_code < HTTP_ERROR_THRESHOLD else logging.WARNING
    logger.log(
        log_level,
        "Request completed: %s %s",
        request.method,
        request.url.path,
        extra={
            "request_id": request_id,
            "status_code": response.status_code,
            "process_time_ms": process_time_ms,
        },
    )
    return response


# =============================================================================
# Exception Handlers
# =============================================================================


async def tubely_error_handler(request: Request, exc: TubelyError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "Request failed with %s: %s",
            type(exc).__name__,
            exc.message,
            extra={"path": request.url.path, "cause": repr(exc.__cause__)},
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message},
        headers=exc.headers,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    detail = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": detail},
        headers=getattr(exc, "headers", None),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": "Invalid request"})


async def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Generic 500 without internal details; the traceback goes to the log."""
    logger.error(
        "Internal server error on %s %s: %s",
        request.method,
        request.url.path,
        exc,
        exc_info=exc,
    )
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# =============================================================================
# Application Factory
# =============================================================================


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Build the FastAPI application for ``settings`` (process settings by default).

    The settings instance is stored on ``app.state.settings``; request
    dependencies read it from there rather than from module globals.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=f"{settings.app_name} API",
        description="Upload thumbnails and video files and publish them for playback.",
        version=__version__,
        lifespan=lifespan,
        debug=settings.debug,
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Process-Time"],
    )
    app.middleware("http")(request_logging_middleware)

    app.add_exception_handler(TubelyError, tubely_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, internal_error_handler)

    app.include_router(api_router, prefix="/api/v1")
    app.mount(
        "/assets",
        StaticFiles(directory=settings.assets_root, check_dir=False),
        name="assets",
    )

    @app.get("/health", tags=["health"], summary="Health Check")
    async def health_check() -> dict[str, Any]:
        return {
            "status": "healthy",
            "timestamp": datetime.now(UTC).isoformat(),
            "version": __version__,
            "service": settings.app_name,
        }

    @app.get("/ready", tags=["health"], summary="Readiness Check")
    async def readiness_check(request: Request) -> JSONResponse:
        """Report whether MongoDB answers a ping; 503 until it does."""
        db = getattr(request.app.state, "db", None)
        database_ok = db is not None and await db.ping()
        return JSONResponse(
            status_code=200 if database_ok else 503,
            content={
                "status": "ready" if database_ok else "not_ready",
                "checks": {"database": "ok" if database_ok else "unavailable"},
            },
        )

    return app


app = create_app()


def run() -> None:
    """Run the API server with uvicorn using the process settings."""
    settings = get_settings()
    uvicorn.run(
        "tubely.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level,
    )


if __name__ == "__main__":
    run()

"""
FastAPI application entry point for the Brief server.

This module provides:
- The application factory wiring settings, database and middleware
- Request correlation (x-request-id) and request logging
- Health, readiness and Prometheus metrics endpoints
- The process entry point, which verifies MongoDB before serving
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

import structlog
import uvicorn
from fastapi import APIRouter, Depends, FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry
from starlette.exceptions import HTTPException as StarletteHTTPException

from server.src.config import Settings, get_settings
from server.src.database import (
    DatabaseConnection,
    bootstrap_or_exit,
    close_database,
)
from server.src.dependencies import get_app_settings, get_database
from server.src.middleware import (
    REQUEST_ID_HEADER,
    RequestContextMiddleware,
    extract_base_properties,
)
from shared.logging import configure_logging
from shared.metrics import HTTPMetrics, get_metrics_handler

logger = structlog.get_logger(__name__)

# ============================================================================
# Lifespan Management
# ============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager for startup and shutdown events.

    The database connection is established before the application is built
    (see :func:`build_app`); the lifespan only reports it and closes it on
    shutdown.
    """
    settings: Settings = app.state.settings
    metrics: HTTPMetrics = app.state.metrics

    logger.info(
        "application_starting",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
    )

    if app.state.database is None:
        logger.warning("application_started_without_database")
    metrics.database_up.set(0 if app.state.database is None else 1)

    logger.info(
        "application_started",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
    )

    try:
        yield
    finally:
        logger.info("application_shutting_down")
        close_database(app.state.database)
        app.state.database = None
        metrics.database_up.set(0)
        logger.info("application_shutdown_complete")


# ============================================================================
# Health, Readiness and Metrics Endpoints
# ============================================================================

router = APIRouter()


@router.get("/health", tags=["Health"])
async def health_check(settings: Settings = Depends(get_app_settings)) -> Dict[str, Any]:
    """
    Health check endpoint.

    Returns basic health status without checking dependencies.
    """
    return {
        "status": "healthy",
        "service": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
    }


@router.get("/ready", tags=["Health"])
def readiness_check(
    request: Request,
    database: DatabaseConnection = Depends(get_database),
    settings: Settings = Depends(get_app_settings),
) -> JSONResponse:
    """
    Readiness check endpoint.

    Pings MongoDB through the application's connection.
    """
    healthy = database.ping()
    request.app.state.metrics.database_up.set(1 if healthy else 0)

    if not healthy:
        logger.error("database_health_check_failed", **extract_base_properties(request))

    return JSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "ready" if healthy else "not_ready",
            "service": settings.app_name,
            "version": settings.app_version,
            "checks": {"database": "healthy" if healthy else "unhealthy"},
        },
    )


@router.get("/metrics", tags=["Monitoring"])
async def metrics(request: Request) -> Response:
    """Prometheus metrics endpoint."""
    handler = get_metrics_handler(request.app.state.metrics.registry)
    return Response(content=handler(), media_type=CONTENT_TYPE_LATEST)


# ============================================================================
# Exception Handlers
# ============================================================================


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle request validation errors."""
    logger.warning(
        "validation_error",
        **extract_base_properties(request),
        errors=exc.errors(),
    )
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": exc.errors()},
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions."""
    logger.warning(
        "http_exception",
        **extract_base_properties(request),
        status_code=exc.status_code,
        detail=exc.detail,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=getattr(exc, "headers", None),
    )


# ============================================================================
# FastAPI Application
# ============================================================================


def create_app(
    settings: Optional[Settings] = None,
    database: Optional[DatabaseConnection] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Application settings (cached settings when omitted)
        database: Verified database connection; when omitted, database
            dependent endpoints answer 503

    Returns:
        Configured FastAPI application
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Brief study assistant API.",
        lifespan=lifespan,
        debug=settings.is_development,
    )

    app.state.settings = settings
    app.state.database = database
    app.state.metrics = HTTPMetrics(registry=CollectorRegistry())

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
    )
    # Registered last: outermost, wraps CORS.
    app.add_middleware(
        RequestContextMiddleware,
        metrics=app.state.metrics,
        request_id_max_length=settings.request_id_max_length,
    )

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)

    app.include_router(router)
    return app


# ============================================================================
# Application Entry Point
# ============================================================================


def build_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Configure logging, connect to MongoDB and build the application.

    MongoDB is connected and pinged before the application exists; the
    process exits with status 1 if that fails. Usable as a uvicorn factory:
    ``uvicorn --factory server.src.main:build_app``.
    """
    settings = settings or get_settings()

    configure_logging(
        log_level=settings.log_level,
        json_logs=settings.json_logs,
        service_name=settings.app_name,
        environment=settings.environment,
    )

    logger.info(
        "brief_server_starting",
        host=settings.host,
        port=settings.port,
        environment=settings.environment,
    )

    database = bootstrap_or_exit(settings)
    return create_app(settings, database)


_app: Optional[FastAPI] = None


def __getattr__(name: str) -> Any:
    # ``uvicorn server.src.main:app`` resolves the application here, so the
    # database bootstrap runs on first access instead of at import time.
    global _app
    if name == "app":
        if _app is None:
            _app = build_app()
        return _app
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def main() -> None:
    """Run the Brief server."""
    settings = get_settings()
    application = build_app(settings)

    uvicorn.run(
        application,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        access_log=False,
    )


if __name__ == "__main__":
    main()

"""
FastAPI application entry point for the Service Request Engine.

This module provides the FastAPI application with:
- Health endpoint backed by a document store ping
- Request/response logging with correlation ids
- Prometheus metrics
- CORS
- Mapping of lifecycle errors to JSON error responses
- Document store and service construction on startup, cleanup on shutdown
"""

import time
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

import structlog
import uvicorn
from fastapi import FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from api.src.config import Settings, get_settings
from api.src.dependencies import build_services, build_store
from api.src.errors import ServiceRequestError, StoreUnavailableError
from api.src.repositories.document_store import DocumentStore
from api.src.routers import notifications, requests
from shared.logging import bind_context, configure_logging, unbind_context
from shared.metrics import LifecycleMetrics, get_metrics_handler

logger = structlog.get_logger(__name__)


# ============================================================================
# Request Logging and Metrics Middleware
# ============================================================================


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for request logging, correlation ids and HTTP metrics."""

    def __init__(self, app, metrics: Optional[LifecycleMetrics] = None):
        super().__init__(app)
        self.metrics = metrics

    async def dispatch(self, request: Request, call_next):
        """Process request and log details."""
        correlation_id = request.headers.get("X-Correlation-ID") or str(uuid.uuid4())
        method = request.method
        path = request.url.path

        bind_context(correlation_id=correlation_id)

        start_time = time.perf_counter()
        logger.debug("request_started", method=method, path=path)

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "request_failed",
                method=method,
                path=path,
                error=str(e),
                duration=f"{time.perf_counter() - start_time:.3f}s",
                exc_info=True,
            )
            unbind_context("correlation_id")
            raise

        duration = time.perf_counter() - start_time
        route = request.scope.get("route")
        endpoint = getattr(route, "path", path)

        if self.metrics:
            self.metrics.http_requests.labels(
                method=method, endpoint=endpoint, status=response.status_code
            ).inc()
            self.metrics.http_request_duration.labels(method=method, endpoint=endpoint).observe(duration)

        logger.info(
            "request_completed",
            method=method,
            path=path,
            status_code=response.status_code,
            duration=f"{duration:.3f}s",
        )
        response.headers["X-Correlation-ID"] = correlation_id
        unbind_context("correlation_id")
        return response


# ============================================================================
# Exception Handlers
# ============================================================================


async def service_request_error_handler(request: Request, exc: ServiceRequestError) -> JSONResponse:
    """Map lifecycle errors to their HTTP status and error code."""
    logger.info(
        "service_request_error",
        path=request.url.path,
        error_code=exc.error_code,
        status_code=exc.http_status,
        detail=exc.message,
    )
    return JSONResponse(
        status_code=exc.http_status,
        content={"detail": exc.message, "error_code": exc.error_code},
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle request body/query validation errors."""
    logger.warning("validation_error", path=request.url.path, errors=exc.errors())
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": jsonable_errors(exc), "error_code": "VALIDATION_FAILED"},
    )


def jsonable_errors(exc: RequestValidationError) -> Any:
    # Error contexts may hold exception instances; keep the readable parts only.
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle HTTP exceptions."""
    logger.warning(
        "http_exception",
        path=request.url.path,
        status_code=exc.status_code,
        detail=exc.detail,
    )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.error("unexpected_exception", path=request.url.path, error=str(exc), exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


# ============================================================================
# Application Factory
# ============================================================================


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[DocumentStore] = None,
    registry: Optional[CollectorRegistry] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Application settings (defaults to ``get_settings()``)
        store: Document store to use instead of the configured backend
        registry: Prometheus registry (defaults to a fresh registry per app)

    Returns:
        Configured application
    """
    settings = settings or get_settings()
    registry = registry if registry is not None else CollectorRegistry()
    metrics = LifecycleMetrics(registry) if settings.metrics_enabled else None

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """
        Application lifespan manager for startup and shutdown events.

        Handles:
        - Logging configuration
        - Document store and service initialization
        - Graceful shutdown and resource cleanup
        """
        configure_logging(
            log_level=settings.log_level,
            json_logs=settings.json_logs,
            service_name=settings.app_name,
        )
        logger.info(
            "application_starting",
            app_name=settings.app_name,
            version=settings.app_version,
            environment=settings.environment,
            store_backend=settings.store_backend,
        )

        document_store = store if store is not None else build_store(settings)
        app.state.services = build_services(settings, document_store, metrics)

        try:
            await document_store.ping()
            logger.info("document_store_connected")
        except StoreUnavailableError as e:
            # Serve anyway; /health reports the outage and calls fail with 503.
            logger.error("document_store_unreachable", error=e.message)

        logger.info("application_started", app_name=settings.app_name)

        try:
            yield
        finally:
            logger.info("application_shutting_down")
            try:
                await document_store.close()
            except Exception as e:
                logger.error("application_shutdown_failed", error=str(e), exc_info=True)
            app.state.services = None
            logger.info("application_shutdown_complete")

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description=(
            "Lifecycle engine for multi-party service requests: creation, "
            "status transitions, provider assignment, chat channel "
            "provisioning and notification fan-out."
        ),
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
        debug=settings.debug,
    )
    app.state.settings = settings
    app.state.metrics = metrics
    app.state.services = None

    # ========================================================================
    # Middleware
    # ========================================================================

    if settings.cors_enabled:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
    app.add_middleware(RequestLoggingMiddleware, metrics=metrics)

    # ========================================================================
    # Exception Handlers
    # ========================================================================

    app.add_exception_handler(ServiceRequestError, service_request_error_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    # ========================================================================
    # Health and Metrics Endpoints
    # ========================================================================

    @app.get("/health", tags=["Health"], response_class=JSONResponse)
    async def health_check(request: Request) -> JSONResponse:
        """
        Health check endpoint.

        Pings the document store; answers 503 when it is unreachable.
        """
        checks: Dict[str, str] = {"store": "unknown"}
        services = request.app.state.services
        if services is not None:
            try:
                await services.store.ping()
                checks["store"] = "healthy"
            except StoreUnavailableError as e:
                logger.error("store_health_check_failed", error=e.message)
                checks["store"] = "unhealthy"

        healthy = all(value == "healthy" for value in checks.values())
        return JSONResponse(
            status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "healthy" if healthy else "unhealthy",
                "service": settings.app_name,
                "version": settings.app_version,
                "environment": settings.environment,
                "checks": checks,
            },
        )

    if metrics is not None:
        render_metrics = get_metrics_handler(registry)

        @app.get(settings.metrics_endpoint, tags=["Monitoring"], include_in_schema=False)
        async def metrics_endpoint() -> Response:
            """Prometheus metrics endpoint."""
            return Response(content=render_metrics(), media_type=CONTENT_TYPE_LATEST)

    # ========================================================================
    # API Routers
    # ========================================================================

    app.include_router(requests.router, prefix=settings.api_prefix)
    app.include_router(notifications.router, prefix=settings.api_prefix)

    return app


app = create_app()


# ============================================================================
# Application Entry Point
# ============================================================================

if __name__ == "__main__":
    settings = get_settings()
    logger.info(
        "starting_uvicorn_server",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )

    uvicorn.run(
        "api.src.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
        access_log=True,
    )

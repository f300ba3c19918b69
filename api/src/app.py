"""
FastAPI application factory for the Food Delivery API.

create_app() assembles the service:
- Process-scoped state (settings, MongoDB handle, rate limiter, metrics)
- The ordered request policy chain (see api.src.middleware)
- The seven domain route groups under /api
- Health check and optional metrics endpoints
- The global error handler
- The catch-all 404 responder, registered last
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Mapping, Optional

import structlog
from fastapi import APIRouter, FastAPI, Response
from fastapi.exceptions import RequestValidationError
from prometheus_client import CollectorRegistry, CONTENT_TYPE_LATEST
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.src.config import Settings, get_settings
from api.src.errors import ApiError, global_error_handler
from api.src.middleware import build_middleware_stack
from api.src.models import ErrorResponse
from api.src.middleware.request_logging import UNMATCHED
from api.src.routers import fallback, health, mount_route_groups, route_templates
from api.src.services.database import MongoDatabase
from api.src.services.rate_limiter import RateLimiter
from shared.metrics import HttpMetrics, get_metrics_handler

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager for startup and shutdown events.

    The MongoDB connection attempt is started in the background and not
    awaited: the server starts accepting requests whatever its outcome.
    """
    settings: Settings = app.state.settings
    database: MongoDatabase = app.state.database

    logger.info(
        "application_starting",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment
    )

    task = database.start()
    task.add_done_callback(
        lambda _: app.state.metrics.database_up.set(1 if database.is_connected else 0)
    )

    logger.info(
        "application_started",
        app_name=settings.app_name,
        port=settings.port
    )

    try:
        yield
    finally:
        logger.info("application_shutting_down")
        await database.close()
        app.state.metrics.database_up.set(0)
        logger.info("application_shutdown_complete")


def create_app(
    settings: Optional[Settings] = None,
    database: Optional[MongoDatabase] = None,
    rate_limiter: Optional[RateLimiter] = None,
    routers: Optional[Mapping[str, APIRouter]] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Application settings (defaults to get_settings())
        database: MongoDB handle (defaults to one built from settings)
        rate_limiter: Rate limiter (defaults to one built from settings)
        routers: Route group routers keyed by group name, replacing the
            module routers of those groups

    Returns:
        Configured application
    """
    settings = settings or get_settings()
    database = database or MongoDatabase.from_settings(settings)
    rate_limiter = rate_limiter or RateLimiter.from_settings(settings)
    metrics = HttpMetrics(registry=CollectorRegistry())

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="HTTP API for the food delivery application.",
        docs_url="/docs" if settings.docs_enabled else None,
        redoc_url="/redoc" if settings.docs_enabled else None,
        openapi_url="/openapi.json" if settings.docs_enabled else None,
        middleware=build_middleware_stack(settings, rate_limiter, metrics),
        responses={500: {"model": ErrorResponse}},
        lifespan=lifespan,
        debug=settings.debug,
    )

    app.state.settings = settings
    app.state.database = database
    app.state.rate_limiter = rate_limiter
    app.state.metrics = metrics
    app.state.route_templates = {}

    # Exception handlers
    for exc_class in (ApiError, StarletteHTTPException, RequestValidationError, Exception):
        app.add_exception_handler(exc_class, global_error_handler)

    # Routes: domain groups, health, metrics, then the catch-all
    templates = app.state.route_templates
    mount_route_groups(app, settings.api_prefix, overrides=routers, templates=templates)
    app.include_router(health.router, prefix=settings.api_prefix)
    templates.update(route_templates(health.router, settings.api_prefix))

    if settings.metrics_enabled:
        render_metrics = get_metrics_handler(metrics.registry)

        @app.get(settings.metrics_endpoint, tags=["Monitoring"], include_in_schema=False)
        async def prometheus_metrics() -> Response:
            """Prometheus metrics endpoint."""
            return Response(content=render_metrics(), media_type=CONTENT_TYPE_LATEST)

    fallback.add_fallback_route(app)
    templates[fallback.endpoint_not_found] = UNMATCHED

    logger.debug("application_created", app_name=settings.app_name, api_prefix=settings.api_prefix)
    return app

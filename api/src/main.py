"""
Process entry point for the Food Delivery API.

Configures structured logging, builds the application from the environment
and serves it with uvicorn:

    food-delivery-api
    uvicorn --factory api.src.main:build_app --port 5000

Importing this module has no side effects; settings are read when the
application is built.
"""

import structlog
import uvicorn
from fastapi import FastAPI

from api.src.app import create_app
from api.src.config import Settings, get_settings
from shared.logging import configure_logging

APP_FACTORY = "api.src.main:build_app"

logger = structlog.get_logger(__name__)


def setup_logging(settings: Settings) -> None:
    configure_logging(
        log_level=settings.log_level,
        json_logs=settings.log_format == "json",
        service_name=settings.app_name,
        environment=settings.environment,
    )


def build_app() -> FastAPI:
    """Application factory used by uvicorn (also in reload workers)."""
    settings = get_settings()
    setup_logging(settings)
    return create_app(settings)


def run() -> None:
    """
    Run the application with Uvicorn.

    Serves until the process is terminated; a failed database connection
    does not stop it.
    """
    settings = get_settings()
    setup_logging(settings)
    reload = settings.debug and settings.is_development

    logger.info(
        "starting_uvicorn_server",
        host=settings.host,
        port=settings.port,
        reload=reload
    )

    uvicorn.run(
        APP_FACTORY,
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=reload,
        log_level=settings.log_level.lower(),
        access_log=False,
        server_header=False,
    )


if __name__ == "__main__":
    run()

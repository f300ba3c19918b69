"""Structured logging configuration using structlog.

Every entry carries the service name, the deployment environment, an ISO
timestamp and whatever request context is bound (the correlation ID while a
request is being processed). Production renders JSON lines, development a
coloured console format.
"""

import logging
import sys
from contextlib import contextmanager
from typing import Any, Iterable, Iterator, List

import structlog
from structlog.types import EventDict, Processor

DEFAULT_SERVICE = "food-delivery-api"

# Loggers whose output duplicates the request log
QUIET_LOGGERS = ("uvicorn.access",)


def app_context_processor(app: str, environment: str) -> Processor:
    """Build a processor that tags log entries with application context."""

    def add_app_context(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("app", app)
        event_dict.setdefault("environment", environment)
        return event_dict

    return add_app_context


def build_processors(service_name: str, environment: str, json_logs: bool) -> List[Processor]:
    """Processor chain shared by every logger of the service.

    Args:
        service_name: Value of the "app" key
        environment: Value of the "environment" key
        json_logs: Render JSON lines instead of console output

    Returns:
        Processors, renderer last
    """
    renderer: Processor = (
        structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()
    )
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        app_context_processor(service_name, environment),
        renderer,
    ]


def configure_logging(
    log_level: str = "INFO",
    json_logs: bool = True,
    service_name: str = DEFAULT_SERVICE,
    environment: str = "production",
    cache_loggers: bool = True,
    quiet_loggers: Iterable[str] = QUIET_LOGGERS,
) -> None:
    """Configure structured logging for the process.

    Args:
        log_level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: Whether to output logs in JSON format
        service_name: Name of the service for log tagging
        environment: Deployment environment added to every entry
        cache_loggers: Cache bound loggers on first use (disable in tests)
        quiet_loggers: Standard library loggers raised to WARNING
    """
    level = getattr(logging, log_level.upper())

    structlog.configure(
        processors=build_processors(service_name, environment, json_logs),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=cache_loggers,
    )

    # Standard library handler for structlog output and third-party loggers
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level, force=True)
    for name in quiet_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)


class LoggerMixin:
    """Mixin giving a class a logger bound to its component name."""

    @property
    def logger(self) -> Any:
        return structlog.get_logger(self.__class__.__module__).bind(
            component=self.__class__.__name__
        )


@contextmanager
def log_context(**kwargs: Any) -> Iterator[None]:
    """Bind context to every entry logged inside the block.

    Example:
        with log_context(correlation_id="abc"):
            logger.info("request_started")  # carries correlation_id
    """
    with structlog.contextvars.bound_contextvars(**kwargs):
        yield

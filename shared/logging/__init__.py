"""Structured logging module using structlog."""

from .structured_logger import (
    LoggerMixin,
    build_processors,
    configure_logging,
    log_context,
)

__all__ = [
    "LoggerMixin",
    "build_processors",
    "configure_logging",
    "log_context",
]

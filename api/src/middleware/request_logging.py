"""
Request logging and metrics middleware.

Every request gets a correlation ID (taken from X-Correlation-ID or
generated), bound to the structlog context for the duration of the request
and echoed back on the response.
"""

import time
import uuid
from typing import Callable

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from shared.logging import log_context
from shared.metrics import HttpMetrics

logger = structlog.get_logger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"

UNMATCHED = "unmatched"


def route_label(request: Request) -> str:
    """
    Metric label for the matched route template, bounded in cardinality.

    Endpoints are looked up in app.state.route_templates (filled when the
    routes are mounted) so the label carries the full mounted template.
    Requests no route claimed, including those answered by the catch-all,
    are labelled "unmatched".
    """
    templates = getattr(request.app.state, "route_templates", {})
    endpoint = request.scope.get("endpoint")
    if endpoint is not None and endpoint in templates:
        return templates[endpoint]
    return getattr(request.scope.get("route"), "path", UNMATCHED)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for request logging and metrics."""

    def __init__(self, app, metrics: HttpMetrics):
        super().__init__(app)
        self.metrics = metrics

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request and log details."""
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        request.state.correlation_id = correlation_id

        with log_context(correlation_id=correlation_id):
            response = await self._observe(request, call_next)

        response.headers[CORRELATION_HEADER] = correlation_id
        return response

    async def _observe(self, request: Request, call_next: Callable) -> Response:
        method = request.method
        path = request.url.path
        client_ip = request.client.host if request.client else "unknown"

        self.metrics.requests_in_progress.labels(method=method).inc()
        start_time = time.perf_counter()

        logger.info("request_started", method=method, path=path, client_ip=client_ip)

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "request_failed",
                method=method,
                path=path,
                error=str(e),
                duration=f"{time.perf_counter() - start_time:.3f}s",
                exc_info=True
            )
            raise
        finally:
            self.metrics.requests_in_progress.labels(method=method).dec()

        duration = time.perf_counter() - start_time
        endpoint = route_label(request)

        self.metrics.requests_total.labels(
            method=method,
            endpoint=endpoint,
            status=response.status_code
        ).inc()
        self.metrics.request_duration.labels(method=method, endpoint=endpoint).observe(duration)

        logger.info(
            "request_completed",
            method=method,
            path=path,
            status_code=response.status_code,
            duration=f"{duration:.3f}s"
        )
        return response

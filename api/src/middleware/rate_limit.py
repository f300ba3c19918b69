"""
Rate limiting middleware.

Requests under the limiter's path prefix are counted per client. Once a
client exhausts its allowance, requests are answered with 429 and a fixed
plain-text message until the window resets; they never reach the routes.
"""

from typing import Callable

import structlog
from fastapi import Request, Response, status
from fastapi.responses import PlainTextResponse
from starlette.middleware.base import BaseHTTPMiddleware

from api.src.errors import global_error_handler
from api.src.services.rate_limiter import RateLimitDecision, RateLimiter
from shared.metrics import HttpMetrics

logger = structlog.get_logger(__name__)


def rate_limit_headers(decision: RateLimitDecision) -> dict:
    return {
        "X-RateLimit-Limit": str(decision.limit),
        "X-RateLimit-Remaining": str(decision.remaining),
        "X-RateLimit-Reset": str(int(decision.reset_at)),
    }


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Middleware rejecting clients above their request allowance."""

    def __init__(
        self,
        app,
        limiter: RateLimiter,
        message: str,
        metrics: HttpMetrics,
        headers_enabled: bool = True,
    ):
        """
        Initialize rate limit middleware.

        Args:
            app: ASGI application
            limiter: Process-scoped rate limiter holding the counters
            message: Body of the 429 response
            metrics: Metric set counting rejections
            headers_enabled: Send X-RateLimit-* headers
        """
        super().__init__(app)
        self.limiter = limiter
        self.message = message
        self.metrics = metrics
        self.headers_enabled = headers_enabled

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not self.limiter.applies_to(request.url.path):
            return await call_next(request)

        client = self.limiter.key_for(request)
        try:
            decision = await self.limiter.hit(client)
        except Exception as exc:
            # Counter storage unreachable (e.g. Redis down)
            return await global_error_handler(request, exc)

        if not decision.allowed:
            logger.warning(
                "rate_limit_exceeded",
                client=client,
                path=request.url.path,
                method=request.method,
                limit=decision.limit
            )
            self.metrics.rate_limited_total.labels(method=request.method).inc()

            headers = {"Retry-After": str(decision.retry_after)}
            if self.headers_enabled:
                headers.update(rate_limit_headers(decision))
            return PlainTextResponse(
                self.message,
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                headers=headers,
            )

        response = await call_next(request)

        if self.headers_enabled:
            response.headers.update(rate_limit_headers(decision))

        return response

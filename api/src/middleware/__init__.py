"""FastAPI middleware components.

This package contains the request policies applied to every request and
build_middleware_stack(), which returns them as an ordered list, outermost
first:

1. SecurityHeadersMiddleware - hardening headers on every response
2. RequestLoggingMiddleware - correlation IDs, request logs, metrics
3. RateLimitMiddleware - per-client allowance under the API prefix
4. CrossOriginMiddleware - credentialed cross-origin access for allowed origins
5. ErrorHandlerMiddleware - failures below become error responses
6. BodyParserMiddleware - JSON and form decoding with size ceilings
"""

from typing import List


from starlette.middleware import Middleware

from api.src.config import Settings
from api.src.errors import global_error_handler
from api.src.middleware.body_parser import BodyParserMiddleware
from api.src.middleware.cors import CrossOriginMiddleware
from api.src.middleware.error_handler import ErrorHandlerMiddleware
from api.src.middleware.rate_limit import RateLimitMiddleware
from api.src.middleware.request_logging import RequestLoggingMiddleware
from api.src.middleware.security_headers import SecurityHeadersMiddleware
from api.src.services.rate_limiter import RateLimiter
from shared.metrics import HttpMetrics


def build_middleware_stack(
    settings: Settings,
    rate_limiter: RateLimiter,
    metrics: HttpMetrics,
) -> List[Middleware]:
    """
    Build the ordered request policy chain.

    Args:
        settings: Application settings
        rate_limiter: Process-scoped rate limiter
        metrics: Metric set shared by the policies

    Returns:
        Middleware list, outermost first, for FastAPI(middleware=...)
    """
    stack = [
        Middleware(SecurityHeadersMiddleware, settings=settings),
        Middleware(RequestLoggingMiddleware, metrics=metrics),
    ]

    if settings.rate_limit_enabled:
        stack.append(
            Middleware(
                RateLimitMiddleware,
                limiter=rate_limiter,
                message=settings.rate_limit_message,
                metrics=metrics,
                headers_enabled=settings.rate_limit_headers_enabled,
            )
        )

    if settings.cors_enabled:
        stack.append(
            Middleware(
                CrossOriginMiddleware,
                allow_origins=settings.cors_origins,
                allow_credentials=settings.cors_allow_credentials,
                allow_methods=settings.cors_allow_methods,
                allow_headers=settings.cors_allow_headers,
                max_age=settings.cors_max_age,
            )
        )

    stack.append(Middleware(ErrorHandlerMiddleware, handler=global_error_handler))
    stack.append(
        Middleware(
            BodyParserMiddleware,
            json_limit=settings.body_json_limit,
            form_limit=settings.body_form_limit,
        )
    )

    return stack


__all__ = [
    "BodyParserMiddleware",
    "CrossOriginMiddleware",
    "ErrorHandlerMiddleware",
    "RateLimitMiddleware",
    "RequestLoggingMiddleware",
    "SecurityHeadersMiddleware",
    "build_middleware_stack",
]

"""
API error types and the global error handler.

Every failure raised while a request is processed ends up in
global_error_handler(), which renders the JSON error envelope:

    {"success": false, "message": "...", "errors": [...]}

The handler is registered with FastAPI for HTTP and validation errors and
also drives ErrorHandlerMiddleware for everything else.
"""

import structlog
from typing import Any, Dict, Optional

from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = structlog.get_logger(__name__)


class ApiError(Exception):
    """Base class for errors that map to a client-visible status."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, headers: Optional[Dict[str, str]] = None):
        self.message = message or self.message
        self.headers = headers
        super().__init__(self.message)


class BadRequestError(ApiError):
    """Malformed request payload."""

    status_code = status.HTTP_400_BAD_REQUEST
    message = "Bad request"


class PayloadTooLargeError(ApiError):
    """Request body above the configured ceiling."""

    status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
    message = "Request entity too large"


class DatabaseUnavailableError(ApiError):
    """The data store connection is not established."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    message = "Database unavailable"


def error_payload(message: str, **extra: Any) -> Dict[str, Any]:
    """Build the error envelope shared by every failure response."""
    payload: Dict[str, Any] = {"success": False, "message": message}
    payload.update(extra)
    return payload


async def global_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Render any exception raised while processing a request.

    Args:
        request: HTTP request being processed
        exc: The exception that interrupted it

    Returns:
        JSON error response; internal details never leave the process
    """
    path = request.url.path

    if isinstance(exc, ApiError):
        log = logger.error if exc.status_code >= 500 else logger.warning
        log("api_error", path=path, status_code=exc.status_code, error=exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content=error_payload(exc.message),
            headers=exc.headers,
        )

    if isinstance(exc, RequestValidationError):
        logger.warning("validation_error", path=path, errors=exc.errors())
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=error_payload(
                "Validation failed",
                errors=jsonable_encoder(exc.errors()),
            ),
        )

    if isinstance(exc, StarletteHTTPException):
        logger.warning(
            "http_exception",
            path=path,
            status_code=exc.status_code,
            detail=exc.detail
        )
        if isinstance(exc.detail, str):
            content = error_payload(exc.detail)
        else:
            content = error_payload("Request failed", errors=jsonable_encoder(exc.detail))
        return JSONResponse(
            status_code=exc.status_code,
            content=content,
            headers=getattr(exc, "headers", None),
        )

    logger.error(
        "unexpected_exception",
        path=path,
        method=request.method,
        error=str(exc),
        exc_info=exc
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_payload("Internal server error"),
    )

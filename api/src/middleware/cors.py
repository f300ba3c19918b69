"""
Cross-origin policy.

Starlette's CORSMiddleware with one change: a preflight that asks for an
origin, method or header outside the policy is answered 204 without any
Access-Control-Allow-Origin, instead of a plain-text 400. The browser
enforces the denial; the caller never sees a non-JSON error body.
"""

import structlog
from fastapi import Response, status
from starlette.datastructures import Headers
from starlette.middleware.cors import CORSMiddleware

logger = structlog.get_logger(__name__)

BODY_HEADERS = ("content-length", "content-type")


class CrossOriginMiddleware(CORSMiddleware):
    """CORS allow-list with silent preflight denials."""

    def preflight_response(self, request_headers: Headers) -> Response:
        response = super().preflight_response(request_headers)
        if response.status_code != status.HTTP_400_BAD_REQUEST:
            return response

        logger.info(
            "cors_preflight_denied",
            origin=request_headers.get("origin"),
            method=request_headers.get("access-control-request-method")
        )
        headers = {
            name: value
            for name, value in response.headers.items()
            if name not in BODY_HEADERS
        }
        return Response(status_code=status.HTTP_204_NO_CONTENT, headers=headers)

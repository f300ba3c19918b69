"""
Catch-all 404 responder.

Must be added after every other route: it matches any path and any
method, so a request no route group claims still gets a JSON answer.
The endpoint is a plain ASGI callable; Starlette only restricts methods
for function endpoints, so the route accepts every method, including
non-standard ones such as PROPFIND.
"""

from fastapi import FastAPI, status
from fastapi.responses import JSONResponse
from starlette.types import Receive, Scope, Send

from api.src.errors import error_payload

NOT_FOUND_MESSAGE = "API endpoint not found"

NOT_FOUND_PATH = "/{path:path}"


class EndpointNotFound:
    """ASGI endpoint answering every request with the JSON 404."""

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        response = JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content=error_payload(NOT_FOUND_MESSAGE),
        )
        await response(scope, receive, send)


endpoint_not_found = EndpointNotFound()


def add_fallback_route(app: FastAPI) -> None:
    """Register the catch-all route; call once every other route is added."""
    app.add_route(
        NOT_FOUND_PATH,
        endpoint_not_found,
        name="endpoint_not_found",
        include_in_schema=False,
    )

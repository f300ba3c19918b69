"""
Error handling middleware.

Turns exceptions escaping the body parser or the routes into responses
rendered by the global error handler, so error responses still travel
back through the CORS and security header policies.
"""

from typing import Awaitable, Callable

from fastapi import Request, Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

ExceptionHandler = Callable[[Request, Exception], Awaitable[Response]]


class ErrorHandlerMiddleware:
    """Pure ASGI middleware funnelling failures into one handler."""

    def __init__(self, app: ASGIApp, handler: ExceptionHandler):
        self.app = app
        self.handler = handler

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def send_wrapper(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as exc:
            if response_started:
                raise
            response = await self.handler(Request(scope), exc)
            await response(scope, receive, send)

"""
Request body decoding middleware.

JSON and URL-encoded bodies are read with a size ceiling, decoded and stored
on request.state.body before the routes run. The raw bytes are replayed to
the downstream application so FastAPI body parameters keep working.
Oversized bodies are rejected as soon as the ceiling is crossed, without
buffering the rest of the upload.
"""

import json
from typing import Any, Dict, List, Optional, Union
from urllib.parse import parse_qsl

from starlette.datastructures import Headers
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from api.src.errors import BadRequestError, PayloadTooLargeError

JSON = "json"
FORM = "form"


def body_kind(content_type: str) -> Optional[str]:
    """Classify a Content-Type header as json, form or neither."""
    media_type = content_type.split(";", 1)[0].strip().lower()
    if media_type == "application/json" or media_type.endswith("+json"):
        return JSON
    if media_type == "application/x-www-form-urlencoded":
        return FORM
    return None


def content_charset(content_type: str) -> str:
    for param in content_type.split(";")[1:]:
        name, _, value = param.partition("=")
        if name.strip().lower() == "charset" and value.strip():
            return value.strip().strip('"').lower()
    return "utf-8"


def decode_json(body: bytes, charset: str) -> Union[Dict[str, Any], List[Any]]:
    """Decode a JSON body; only objects and arrays are accepted."""
    if not body.strip():
        return {}
    try:
        parsed = json.loads(body.decode(charset))
    except (UnicodeDecodeError, LookupError, ValueError):
        raise BadRequestError("Malformed JSON in request body")
    if not isinstance(parsed, (dict, list)):
        raise BadRequestError("JSON body must be an object or an array")
    return parsed


def decode_form(body: bytes, charset: str) -> Dict[str, Union[str, List[str]]]:
    """Decode a URL-encoded body; repeated keys become lists."""
    try:
        pairs = parse_qsl(body.decode(charset), keep_blank_values=True)
    except (UnicodeDecodeError, LookupError):
        raise BadRequestError("Malformed form data in request body")

    form: Dict[str, Union[str, List[str]]] = {}
    for key, value in pairs:
        if key not in form:
            form[key] = value
        elif isinstance(form[key], list):
            form[key].append(value)
        else:
            form[key] = [form[key], value]
    return form


class BodyParserMiddleware:
    """Pure ASGI middleware decoding JSON and form bodies with a size cap."""

    def __init__(self, app: ASGIApp, json_limit: int, form_limit: int):
        self.app = app
        self.limits = {JSON: json_limit, FORM: form_limit}

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = Headers(scope=scope)
        content_type = headers.get("content-type", "")
        kind = body_kind(content_type)
        if kind is None:
            await self.app(scope, receive, send)
            return

        limit = self.limits[kind]
        declared = headers.get("content-length")
        if declared is not None and declared.isdigit() and int(declared) > limit:
            raise PayloadTooLargeError()

        body = await self._read_body(receive, limit)
        charset = content_charset(content_type)
        if kind == JSON:
            parsed = decode_json(body, charset)
        else:
            parsed = decode_form(body, charset)
        scope.setdefault("state", {})["body"] = parsed

        replayed = False

        async def replay() -> Message:
            nonlocal replayed
            if not replayed:
                replayed = True
                return {"type": "http.request", "body": body, "more_body": False}
            return await receive()

        await self.app(scope, replay, send)

    async def _read_body(self, receive: Receive, limit: int) -> bytes:
        chunks = []
        size = 0
        more_body = True
        while more_body:
            message = await receive()
            if message["type"] == "http.disconnect":
                raise BadRequestError("Client disconnected before the body was received")
            chunk = message.get("body", b"")
            size += len(chunk)
            if size > limit:
                raise PayloadTooLargeError()
            chunks.append(chunk)
            more_body = message.get("more_body", False)
        return b"".join(chunks)

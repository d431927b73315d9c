"""
ASGI middleware enforcing the request body cap on upload routes.
"""

from __future__ import annotations

import logging

from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from panel_server.errors import UploadTooLargeError

logger = logging.getLogger(__name__)


class BodySizeLimitMiddleware:
    """
    Rejects request bodies above max_bytes on the given paths.

    A declared Content-Length over the limit is answered with 413 before the
    body is read. Bodies without a usable length are counted as they stream
    in; crossing the limit raises UploadTooLargeError inside the handler that
    is reading the body, which the app renders as the same 413 response.
    """

    def __init__(self, app: ASGIApp, max_bytes: int, paths: tuple[str, ...] = ("/upload",)):
        self.app = app
        self.max_bytes = max_bytes
        self.paths = paths

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope["path"] not in self.paths:
            await self.app(scope, receive, send)
            return

        declared = _content_length(scope)
        if declared is not None and declared > self.max_bytes:
            error = UploadTooLargeError(self.max_bytes)
            logger.warning(
                "Rejected %s: declared body of %d bytes exceeds %d",
                scope["path"],
                declared,
                self.max_bytes,
            )
            response = JSONResponse(error.as_dict(), status_code=error.status_code)
            await response(scope, receive, send)
            return

        received = 0

        async def limited_receive() -> Message:
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > self.max_bytes:
                    logger.warning(
                        "Rejected %s: streamed body exceeded %d bytes",
                        scope["path"],
                        self.max_bytes,
                    )
                    raise UploadTooLargeError(self.max_bytes)
            return message

        await self.app(scope, limited_receive, send)


def _content_length(scope: Scope) -> int | None:
    for name, value in scope.get("headers", []):
        if name == b"content-length":
            try:
                return int(value)
            except ValueError:
                return None
    return None

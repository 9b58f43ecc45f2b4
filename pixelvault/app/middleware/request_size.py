"""Request body size limit middleware.

Uploads are held in memory in full before decoding, so oversized bodies
are cut off here. A declared Content-Length is rejected before any parsing;
a chunked body is cut off as soon as the bytes read pass the limit.
"""

import json

from fastapi import HTTPException
from starlette.types import Message, Receive, Scope, Send


def payload_too_large_content(detail: str) -> dict[str, str]:
    """JSON body of every 413 response."""
    return {"error": "payload_too_large", "message": detail}


class SizeLimitedStream:
    """A receive wrapper that counts body bytes as they are read."""

    class SizeExceededError(HTTPException):
        """Raised when request body exceeds size limit.

        An HTTPException so that body parsing inside a route surfaces it
        as 413 instead of a generic parse error. When raised during route
        body parsing it is handled by the application, not by the
        middleware below.
        """

        def __init__(self, detail: str):
            super().__init__(status_code=413, detail=detail)

    def __init__(self, receive: Receive, max_size: int):
        self._receive = receive
        self._max_size = max_size
        self._bytes_read = 0

    async def receive(self) -> Message:
        message = await self._receive()

        if message["type"] == "http.request":
            self._bytes_read += len(message.get("body", b""))
            if self._bytes_read > self._max_size:
                raise self.SizeExceededError(
                    f"Request body too large. Maximum allowed: {self._max_size} bytes"
                )

        return message


class RequestSizeLimitMiddleware:
    """ASGI middleware to limit request body size.

    Returns HTTP 413 (Payload Too Large) with a JSON error body if the
    limit is exceeded. Implemented as raw ASGI middleware so the receive
    callable is wrapped before Starlette's Request is constructed.

    Usage:
        app.add_middleware(RequestSizeLimitMiddleware, max_body_size=50*1024*1024)
    """

    def __init__(self, app, max_body_size: int = 50 * 1024 * 1024):
        self.app = app
        self.max_body_size = max_body_size

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        # Fast path: reject on declared Content-Length without reading the body
        for name, value in scope.get("headers", []):
            if name.lower() == b"content-length":
                try:
                    if int(value.decode()) > self.max_body_size:
                        await self._send_413_response(send)
                        return
                except ValueError:
                    pass
                break

        response_started = False

        async def tracking_send(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        size_limited_receive = SizeLimitedStream(receive, self.max_body_size).receive

        try:
            await self.app(scope, size_limited_receive, tracking_send)
        except SizeLimitedStream.SizeExceededError as exc:
            if response_started:
                raise
            await self._send_413_response(send, detail=exc.detail)

    async def _send_413_response(self, send: Send, detail: str | None = None) -> None:
        if detail is None:
            detail = (
                f"Request body too large. Maximum allowed: {self.max_body_size} bytes"
            )

        body = json.dumps(payload_too_large_content(detail)).encode()
        await send(
            {
                "type": "http.response.start",
                "status": 413,
                "headers": [
                    [b"content-type", b"application/json"],
                    [b"content-length", str(len(body)).encode()],
                ],
            }
        )
        await send({"type": "http.response.body", "body": body})

from starlette.datastructures import Headers
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from app.errors import PayloadTooLargeError
from logger_config import get_logger

logger = get_logger()


class BodySizeLimitMiddleware:
    """Refuse POST bodies above max_body_size while they are being received.

    A declared Content-Length over the limit is rejected before any body is
    read. Chunked bodies are counted as they arrive and the request fails at
    the first message that crosses the limit, so the rest is never consumed.
    """

    def __init__(self, app: ASGIApp, max_body_size: int):
        self.app = app
        self.max_body_size = max_body_size

    async def __call__(self, scope: Scope, receive: Receive, send: Send):
        if scope["type"] != "http" or scope["method"] != "POST":
            await self.app(scope, receive, send)
            return

        content_length = Headers(scope=scope).get("content-length")
        if content_length is not None:
            try:
                declared = int(content_length)
            except ValueError:
                await JSONResponse(status_code=400, content={"error": "Invalid Content-Length header"})(
                    scope, receive, send
                )
                return
            if declared > self.max_body_size:
                logger.info(f"Rejected upload of {declared} bytes")
                await self._reject(scope, receive, send)
                return

        received = 0
        response_started = False

        async def limited_receive() -> Message:
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > self.max_body_size:
                    logger.info(f"Rejected streamed upload after {received} bytes")
                    raise self._too_large()
            return message

        async def tracking_send(message: Message):
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, limited_receive, tracking_send)
        except PayloadTooLargeError:
            # Raised outside a route's exception handling
            if response_started:
                raise
            await self._reject(scope, receive, send)

    def _too_large(self) -> PayloadTooLargeError:
        return PayloadTooLargeError(f"File too large (max {self.max_body_size} bytes)")

    async def _reject(self, scope: Scope, receive: Receive, send: Send):
        error = self._too_large()
        await JSONResponse(status_code=error.status_code, content={"error": error.detail})(scope, receive, send)

"""Request logging, request ids and the HTTP latency histogram."""

from __future__ import annotations

import time
import uuid
from typing import TYPE_CHECKING

from prometheus_client import Histogram
from starlette.datastructures import MutableHeaders

from app.logging import get_logger, reset_request_id, set_request_id

if TYPE_CHECKING:
    from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = get_logger("app.access")

REQUEST_ID_HEADER = "X-Request-ID"

REQUEST_LATENCY = Histogram(
    "omnidesk_http_request_duration_seconds",
    "HTTP request latency",
    ["method", "route", "status"],
)


def _route_label(scope: Scope) -> str:
    # Templated path keeps label cardinality bounded
    route = scope.get("route")
    path = getattr(route, "path", None)
    return path or "unmatched"


class ObservabilityMiddleware:
    """Pure ASGI middleware so websocket scopes pass through untouched."""

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = dict(scope.get("headers") or [])
        incoming = headers.get(REQUEST_ID_HEADER.lower().encode())
        request_id = incoming.decode("latin-1") if incoming else uuid.uuid4().hex
        token = set_request_id(request_id)
        started = time.perf_counter()
        status_code = 500

        async def send_with_request_id(message: Message):
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
                response_headers = MutableHeaders(scope=message)
                response_headers[REQUEST_ID_HEADER] = request_id
            await send(message)

        try:
            await self.app(scope, receive, send_with_request_id)
        finally:
            duration = time.perf_counter() - started
            method = scope.get("method", "")
            client = scope.get("client")
            REQUEST_LATENCY.labels(method, _route_label(scope), str(status_code)).observe(duration)
            logger.info(
                "request method=%s path=%s status=%s duration_ms=%.1f client=%s",
                method,
                scope.get("path", ""),
                status_code,
                duration * 1000,
                client[0] if client else "-",
            )
            reset_request_id(token)

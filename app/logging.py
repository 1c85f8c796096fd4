"""Logging setup shared by the API, the websocket layer and background tasks."""

from __future__ import annotations

import logging
from contextvars import ContextVar, Token

from app.config import settings

_REQUEST_ID: ContextVar[str | None] = ContextVar("request_id", default=None)

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s request_id=%(request_id)s %(message)s"
_configured = False


def get_request_id() -> str | None:
    return _REQUEST_ID.get()


def set_request_id(value: str | None) -> Token[str | None]:
    return _REQUEST_ID.set(value)


def reset_request_id(token: Token[str | None]) -> None:
    _REQUEST_ID.reset(token)


class _RequestContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = _REQUEST_ID.get() or "-"
        return True


def configure_logging(level: str | None = None) -> None:
    """Configure the root logger once.

    Handlers installed by the ASGI server are kept; the request-id filter is
    attached to every root handler so the format can always reference it.
    """
    global _configured
    lvl = getattr(logging, (level or settings.log_level or "INFO").upper(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(lvl)
    if _configured:
        return

    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_LOG_FORMAT))
        root.addHandler(handler)

    context_filter = _RequestContextFilter()
    for handler in root.handlers:
        handler.addFilter(context_filter)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)

"""Structured JSON logging for the identity service.

Each line carries the request correlation id and, once the auth middleware
has verified a bearer token, the caller's user id. Only whitelisted extras are
serialized so credentials passed through ``extra=`` never reach the stream.
"""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any

CORRELATION_ID_CTX: ContextVar[str] = ContextVar("correlation_id", default="")
USER_ID_CTX: ContextVar[str] = ContextVar("user_id", default="")

_EXTRA_KEYS = (
    "user_id",
    "session_id",
    "error_code",
    "path",
    "method",
    "status_code",
    "duration_ms",
    "client_ip",
)

# uvicorn's access log duplicates the request_completed line.
_QUIET_LOGGERS = ("uvicorn.access",)


class JsonLogFormatter(logging.Formatter):
    """Serialize log records into compact JSON lines."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        correlation_id = CORRELATION_ID_CTX.get()
        if correlation_id:
            payload["correlation_id"] = correlation_id

        for key in _EXTRA_KEYS:
            value = getattr(record, key, None)
            if value not in (None, ""):
                payload[key] = value if isinstance(value, (int, float)) else str(value)

        if "user_id" not in payload and USER_ID_CTX.get():
            payload["user_id"] = USER_ID_CTX.get()

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False)


def setup_logging(level: str = "INFO") -> None:
    """Route every logger through one stdout JSON handler."""
    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(JsonLogFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.addHandler(handler)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def bind_request_context(correlation_id: str) -> None:
    """Start a request: new correlation id, no caller identity yet."""
    CORRELATION_ID_CTX.set(correlation_id)
    USER_ID_CTX.set("")


def bind_user_id(user_id: str) -> None:
    USER_ID_CTX.set(user_id)

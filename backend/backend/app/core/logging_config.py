"""Logging setup: plain text for development, one JSON object per line otherwise."""
from __future__ import annotations

import json
import logging
import sys
import threading
from datetime import datetime, timezone
from typing import Any

from app.core.context import get_actor_id, get_request_id
from app.core import settings

_STDLIB_KEYS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "taskName", "request_id", "actor_id"}

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s"


class ContextFilter(logging.Filter):
    """Stamp request id and actor on every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id() or "-"
        record.actor_id = get_actor_id()
        return True


class StructuredFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", None),
            "actor_id": getattr(record, "actor_id", None),
        }
        for key, val in vars(record).items():
            if key not in _STDLIB_KEYS and key not in payload:
                payload[key] = val
        if record.exc_info and record.exc_info[1] is not None:
            exc = record.exc_info[1]
            payload["exc_type"] = type(exc).__name__
            payload["exc_message"] = str(exc)
            if hasattr(exc, "code"):
                payload["exc_code"] = exc.code
            payload["traceback"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


_configured = False
_lock = threading.Lock()


def configure_logging(*, level: str | int | None = None, fmt: str | None = None, stream: Any = None) -> None:
    """Attach one handler to the root logger (idempotent)."""
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.addFilter(ContextFilter())
    if (fmt or settings.LOG_FORMAT) == "json":
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))

    root = logging.getLogger()
    root.setLevel(level or settings.LOG_LEVEL)
    root.addHandler(handler)


def reset_logging() -> None:
    """Drop handlers installed by configure_logging. For tests."""
    global _configured
    with _lock:
        _configured = False
    root = logging.getLogger()
    for h in list(root.handlers):
        if any(isinstance(f, ContextFilter) for f in h.filters):
            root.removeHandler(h)

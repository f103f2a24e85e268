"""Structured JSON logging for rakit.

Every record is rendered as one JSON object. Call sites attach fields as
keyword arguments (``logger.info("msg", event="rakit.x.y", cabinet_id=3)``)
and request-scoped values are bound with :func:`logging_context`.
"""

from __future__ import annotations

import json
import logging
import os
import socket
import traceback
from collections.abc import Iterable, MutableMapping
from contextlib import contextmanager
from contextvars import ContextVar, Token
from datetime import UTC, datetime
from functools import lru_cache
from typing import Any

__all__ = [
    "configure_logging",
    "get_structured_logger",
    "logging_context",
    "parse_level",
    "StructuredJSONFormatter",
    "StructuredLoggerAdapter",
]

SERVICE_NAME = "rakit"

# Attributes present on every LogRecord; anything else is a caller field.
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "context", "asctime"}

_context: ContextVar[dict[str, Any]] = ContextVar("rakit_log_context", default={})
_configured = False


@lru_cache(maxsize=1)
def _host() -> str:
    return os.getenv("HOSTNAME") or socket.gethostname() or "unknown"


class StructuredJSONFormatter(logging.Formatter):
    """Render log records as single-line JSON."""

    def __init__(self, *, service: str = SERVICE_NAME) -> None:
        super().__init__()
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": getattr(record, "service", None) or self.service,
            "env": os.getenv("RAKIT_ENV") or os.getenv("ENV") or "dev",
            "host": _host(),
        }

        event = getattr(record, "event", None)
        if event:
            payload["event"] = event

        context = getattr(record, "context", None) or _context.get()
        for key, value in dict(context or {}).items():
            payload.setdefault(key, value)

        for key, value in record.__dict__.items():
            if key in _RECORD_ATTRS or key.startswith("_") or key in payload:
                continue
            payload[key] = value

        if record.exc_info:
            exc_type, exc, _tb = record.exc_info
            payload["error"] = {
                "type": getattr(exc_type, "__name__", ""),
                "message": str(exc),
                "stack": "".join(traceback.format_exception(*record.exc_info)).strip(),
            }

        return json.dumps(payload, default=repr, ensure_ascii=True)


class StructuredLoggerAdapter(logging.LoggerAdapter):
    """Adapter that turns keyword arguments into structured fields."""

    def process(
        self, msg: str, kwargs: MutableMapping[str, Any]
    ) -> tuple[str, MutableMapping[str, Any]]:
        extra = kwargs.setdefault("extra", {})
        for key in [k for k in kwargs if k not in {"exc_info", "stack_info", "extra"}]:
            extra.setdefault(key, kwargs.pop(key))

        bound = _context.get()
        if bound or self.extra:
            extra.setdefault("context", {**bound, **dict(self.extra or {})})
        return msg, kwargs


def parse_level(value: str | int | None, default: int = logging.INFO) -> int:
    """Translate ``"debug"``/``"INFO"``/``20`` style values to a logging level."""
    if isinstance(value, int):
        return value
    if not value:
        return default
    level = logging.getLevelName(str(value).strip().upper())
    return level if isinstance(level, int) else default


def configure_logging(
    level: int = logging.INFO,
    *,
    handlers: Iterable[logging.Handler] | None = None,
    formatter: logging.Formatter | None = None,
) -> None:
    """Install JSON handlers on the root logger, replacing existing ones."""
    global _configured

    formatter = formatter or StructuredJSONFormatter()
    root = logging.getLogger()
    root.handlers = []
    for handler in handlers or (logging.StreamHandler(),):
        if handler.formatter is None:
            handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(level)
    # uvicorn installs its own handlers; route them through ours instead
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(name).handlers = []
        logging.getLogger(name).propagate = True
    _configured = True


def get_structured_logger(name: str, **context: Any) -> StructuredLoggerAdapter:
    """Return an adapter for ``name`` carrying optional static context."""
    if not _configured:
        configure_logging()
    static = {k: v for k, v in context.items() if v is not None}
    return StructuredLoggerAdapter(logging.getLogger(name), static)


def bind_context(**kwargs: Any) -> Token:
    """Bind key/value pairs to the current logging context."""
    current = dict(_context.get())
    current.update({k: v for k, v in kwargs.items() if v is not None})
    return _context.set(current)


def clear_context(token: Token | None = None) -> None:
    """Reset the logging context, to ``token`` when given."""
    if token is not None:
        _context.reset(token)
    else:
        _context.set({})


@contextmanager
def logging_context(**kwargs: Any):
    """Bind log context for the enclosed block."""
    token = bind_context(**kwargs)
    try:
        yield
    finally:
        clear_context(token)

# src/merge_gateway/infrastructure/logging/logger.py
# Copyright (c) Merge Gateway.
# SPDX-License-Identifier: MIT
"""Structured JSON logging for the gateway.

Every record becomes one JSON line:

    {"ts": ..., "level": ..., "logger": ..., "message": ...,
     "service": ..., "request_id": ..., <extras>}

* ``message`` is an event name (``backend.fetch_failed``, ``access_log``);
  the details travel as extras passed as ``extra={"extra": {...}}``.
* ``request_id`` comes from the record itself or from the per-request
  contextvar set by ``RequestIdMiddleware``.
* ``service`` is fixed once by :func:`configure_root_logging`.
* Extras never overwrite the core keys above.

Typical usage:
    configure_root_logging("INFO", service="merge-gateway")
    log = get_json_logger(__name__)
    log.warning("backend.fetch_failed", extra={"extra": {"backend": "primary"}})
"""

from __future__ import annotations

import json
import logging
import os
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any, Final

__all__ = [
    "configure_root_logging",
    "get_json_logger",
    "get_request_id",
    "set_request_context",
]

_CORE_KEYS: Final[frozenset[str]] = frozenset(
    {"ts", "level", "logger", "message", "service", "request_id", "exc_type", "exc_message"}
)

_request_id: ContextVar[str | None] = ContextVar("merge_gateway_request_id", default=None)


def set_request_context(*, request_id: str | None = None) -> None:
    """Bind ``request_id`` to the current task's logging context."""
    if request_id is not None:
        _request_id.set(request_id)


def get_request_id() -> str | None:
    return _request_id.get()


class _JsonFormatter(logging.Formatter):
    """Render records as single-line JSON objects."""

    def __init__(self, service: str | None = None) -> None:
        super().__init__()
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if self.service:
            payload["service"] = self.service

        request_id = getattr(record, "request_id", None) or _request_id.get()
        if request_id:
            payload["request_id"] = request_id

        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc_value, _ = record.exc_info
            payload["exc_type"] = exc_type.__name__
            payload["exc_message"] = str(exc_value)

        extra = getattr(record, "extra", None)
        if isinstance(extra, dict):
            for key, value in extra.items():
                if key not in _CORE_KEYS:
                    payload[key] = value

        return json.dumps(payload, separators=(",", ":"), ensure_ascii=False, default=str)


def configure_root_logging(level: str | int | None = None, *, service: str | None = None) -> None:
    """Install the JSON handler on the root logger.

    Calling it again only adjusts the level (and the service name, when
    given); handlers are never duplicated.

    Args:
        level: Level or level name. Defaults to ``LOG_LEVEL`` or ``INFO``.
        service: Service name stamped on every record.
    """
    root = logging.getLogger()
    resolved = level if level is not None else os.getenv("LOG_LEVEL") or "INFO"
    root.setLevel(resolved.upper() if isinstance(resolved, str) else resolved)

    for handler in root.handlers:
        if isinstance(handler.formatter, _JsonFormatter):
            if service is not None:
                handler.formatter.service = service
            return
    if root.handlers:
        # Someone else (a test harness, uvicorn) owns the root handlers.
        return

    handler = logging.StreamHandler()
    handler.setFormatter(_JsonFormatter(service))
    root.addHandler(handler)


def get_json_logger(name: str) -> logging.Logger:
    """Return the named logger; output goes through the root JSON handler."""
    return logging.getLogger(name)

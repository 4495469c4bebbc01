# src/merge_gateway/infrastructure/middleware/access_log.py
# Copyright (c) Merge Gateway.
# SPDX-License-Identifier: MIT
"""Access Log Middleware.

Summary:
    One structured ``access_log`` record per request. Requests on the gateway
    route are tagged with the flow that served them, so merged reads and
    proxied writes can be told apart in the log stream without parsing paths.

Fields:
    method, path, status, elapsed_ms, client_ip, request_id: the usual.
    flow: ``read``/``write`` on the gateway route, ``null`` elsewhere.
    response_bytes: Declared ``Content-Length`` of the response, if any
        (proxied responses report the backend's value).

Levels:
    5xx (including 502 from an unreachable write backend) logs at WARNING,
    everything else at INFO. ``elapsed_ms`` is time to response start; a
    streamed proxy body continues after the record is written.

Usage:
    app.add_middleware(AccessLogMiddleware, route_path="/merged", classify=fn)
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response
from starlette.types import ASGIApp

from merge_gateway.infrastructure.logging.logger import get_json_logger

_logger: logging.Logger = get_json_logger(__name__)


def _as_int(raw: str | None) -> int | None:
    return int(raw) if raw and raw.isdigit() else None


class AccessLogMiddleware(BaseHTTPMiddleware):
    """Structured access logging with gateway flow tagging."""

    def __init__(
        self,
        app: ASGIApp,
        *,
        route_path: str | None = None,
        classify: Callable[[str], str] | None = None,
    ) -> None:
        """Initialize the middleware.

        Args:
            app: Downstream ASGI app.
            route_path: The gateway route; only its requests get a ``flow``.
            classify: Maps an HTTP method to a flow name.
        """
        super().__init__(app)
        self._route_path = route_path
        self._classify = classify

    def _flow(self, request: Request) -> str | None:
        if self._classify is None or request.url.path != self._route_path:
            return None
        return self._classify(request.method)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        started = time.perf_counter()
        status = 500
        response_bytes: str | None = None
        try:
            response = await call_next(request)
            status = response.status_code
            response_bytes = response.headers.get("content-length")
            return response
        finally:
            record: dict[str, Any] = {
                "method": request.method,
                "path": request.url.path,
                "flow": self._flow(request),
                "status": status,
                "elapsed_ms": round((time.perf_counter() - started) * 1000.0, 2),
                "response_bytes": _as_int(response_bytes),
                "client_ip": request.client.host if request.client else None,
                "request_id": getattr(request.state, "request_id", None),
            }
            level = logging.WARNING if status >= 500 else logging.INFO
            _logger.log(level, "access_log", extra={"extra": record})

# Copyright (c) Merge Gateway.
# SPDX-License-Identifier: MIT
"""Request latency middleware (Prometheus).

Records ``http_server_request_duration_seconds{method,handler,status}`` for
every request that reaches the app.

Labels:
    * ``handler`` is the matched route template (the gateway route, ``/metrics``).
      Requests that match no route share the single value ``unmatched`` so
      arbitrary paths cannot grow the label set.
    * ``status`` is ``500`` when the downstream raised.

Proxied responses are streamed: the sample measures time to response start,
not the end of the body copy. Metrics failures are logged at debug and never
reach the request.
"""

from __future__ import annotations

import logging
import time
from typing import Final

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from merge_gateway.infrastructure.observability.metrics import (
    get_http_server_request_duration_seconds,
)

__all__ = ["RequestLatencyMiddleware", "UNMATCHED_HANDLER"]

logger = logging.getLogger(__name__)

UNMATCHED_HANDLER: Final[str] = "unmatched"


def _handler_label(request: Request) -> str:
    route = request.scope.get("route")
    template = getattr(route, "path_format", None) or getattr(route, "path", None)
    return template or UNMATCHED_HANDLER


class RequestLatencyMiddleware(BaseHTTPMiddleware):
    """Observe server-side request latency."""

    def __init__(self, app: ASGIApp) -> None:
        super().__init__(app)
        self._histogram = get_http_server_request_duration_seconds()

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        started = time.perf_counter()
        status = "500"
        try:
            response = await call_next(request)
            status = str(response.status_code)
            return response
        finally:
            elapsed = time.perf_counter() - started
            try:
                self._histogram.labels(
                    request.method.upper(), _handler_label(request), status
                ).observe(elapsed)
            except Exception:
                logger.debug("prom.histogram_observe_failed", exc_info=True)

# src/merge_gateway/infrastructure/middleware/request_id.py
# Copyright (c) Merge Gateway.
# SPDX-License-Identifier: MIT
"""Request ID Middleware.

Summary:
    Gives every request a correlation id for logs and error envelopes. A
    caller-supplied ``X-Request-ID`` is reused when it is safe to log;
    otherwise a UUID4 is generated.

Contract:
    • Reads:  X-Request-ID (optional)
    • Stores: request.state.request_id and the logging contextvar
    • Never rewrites the inbound header: a proxied write carries exactly what
      the caller sent, invalid id included.
    • Response header only with ``echo=True``. The default keeps proxied
      responses limited to the write backend's own headers.
"""

from __future__ import annotations

import re
import uuid
from typing import Final

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response
from starlette.types import ASGIApp

from merge_gateway.infrastructure.logging.logger import set_request_context

_REQUEST_ID_HEADER: Final[str] = "X-Request-ID"
# Log-safe ids only: no whitespace, quotes or control characters.
_SAFE_RE: Final[re.Pattern[str]] = re.compile(r"^[A-Za-z0-9\-_.:@]{1,128}$")


def resolve_request_id(inbound: str | None) -> str:
    """Return ``inbound`` when it is log-safe, else a fresh UUID4."""
    if inbound is not None and _SAFE_RE.fullmatch(inbound):
        return inbound
    return str(uuid.uuid4())


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Attach a correlation id to each request."""

    def __init__(self, app: ASGIApp, *, echo: bool = False) -> None:
        super().__init__(app)
        self._echo = echo

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = resolve_request_id(request.headers.get(_REQUEST_ID_HEADER))
        request.state.request_id = request_id
        set_request_context(request_id=request_id)

        response = await call_next(request)
        if self._echo and _REQUEST_ID_HEADER not in response.headers:
            response.headers[_REQUEST_ID_HEADER] = request_id
        return response

# src/merge_gateway/infrastructure/proxy/forwarder.py
# Copyright (c) Merge Gateway.
# SPDX-License-Identifier: MIT
"""Proxy Forwarder: relay write requests to the secondary backend.

Behavior:
    * The outbound request keeps the inbound method and body (streamed, not
      buffered) and carries **every** inbound header, repeated ones included.
      Connection-specific headers are not filtered. ``Host`` is the single
      exception: it is derived from the target URL.
    * Construction failure (bad method token, unusable target URL) → ``400``
      with the error text.
    * Transport failure (connect error, timeout, protocol error) → ``502``
      with the error text. No retry.
    * Success → the upstream status code, all upstream headers verbatim and
      the raw upstream body bytes (no decompression) streamed to the caller.
      A failure while copying the body is logged only: status and headers
      are already on the wire.

Timeout:
    One deadline per call (default 10 s), independent of the read-path
    fetchers. It covers sending the request, the upstream response headers
    and the body relay. Hitting it before the headers arrive is a ``502``;
    hitting it during the body ends the stream like any other copy failure.
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import AsyncIterator
from contextlib import suppress
from typing import Final

import httpx
from starlette.background import BackgroundTask
from starlette.requests import Request
from starlette.responses import Response, StreamingResponse

from merge_gateway.domain.exceptions.gateway import (
    DomainError,
    ProxyRequestError,
    UpstreamUnavailable,
)
from merge_gateway.infrastructure.http.errors import plain_text_error
from merge_gateway.infrastructure.logging.logger import get_json_logger
from merge_gateway.infrastructure.observability.metrics import get_proxy_requests_total

logger = get_json_logger(__name__)

_DEFAULT_TIMEOUT: Final[float] = 10.0

# RFC 9110 method token.
_TOKEN_RE: Final[re.Pattern[str]] = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")


class ProxyForwarder:
    """Forward a request to the write backend and stream its response back."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        *,
        target_url: str,
        timeout_s: float | None = None,
    ) -> None:
        """Initialize the forwarder.

        Args:
            http: Shared ``httpx.AsyncClient`` for proxied calls. Client-level
                default headers are never applied to outbound requests.
            target_url: The secondary backend URL.
            timeout_s: Per-call timeout in seconds (default ``10.0``).
        """
        self._http = http
        self._target_url = target_url
        self._timeout_s = float(timeout_s) if timeout_s is not None else _DEFAULT_TIMEOUT
        self._timeout = httpx.Timeout(self._timeout_s)

    async def forward(self, request: Request) -> Response:
        """Relay ``request`` to the target and return the streamed upstream response."""
        method = request.method
        try:
            outbound = self.build_request(method, request.headers.raw, request.stream())
        except ProxyRequestError as exc:
            self._count(method, "bad_request")
            logger.warning("proxy.request_invalid", extra={"extra": self._fields(method, exc)})
            return plain_text_error(exc)

        deadline = asyncio.get_running_loop().time() + self._timeout_s
        try:
            upstream = await self._send(outbound, deadline)
        except UpstreamUnavailable as exc:
            self._count(method, "upstream_error")
            logger.error("proxy.upstream_unavailable", extra={"extra": self._fields(method, exc)})
            return plain_text_error(exc)

        self._count(method, "ok")
        response = StreamingResponse(
            self._relay(upstream, method, deadline),
            status_code=upstream.status_code,
            background=BackgroundTask(upstream.aclose),
        )
        # Replace, not merge: the caller sees exactly the upstream header list.
        response.raw_headers = list(upstream.headers.raw)
        return response

    def build_request(
        self,
        method: str,
        raw_headers: list[tuple[bytes, bytes]],
        body: AsyncIterator[bytes] | bytes,
    ) -> httpx.Request:
        """Construct the outbound request.

        Args:
            method: Inbound HTTP method, forwarded as-is.
            raw_headers: Inbound header pairs, in order, duplicates included.
            body: Inbound body stream (or bytes).

        Returns:
            An ``httpx.Request`` bound to the target URL with the proxy timeout.

        Raises:
            ProxyRequestError: If the method or target URL is unusable.
        """
        if not _TOKEN_RE.match(method):
            raise ProxyRequestError(f"invalid method {method!r}", details={"reason": "method"})
        headers = [(name, value) for name, value in raw_headers if name.lower() != b"host"]
        try:
            return httpx.Request(
                method,
                self._target_url,
                headers=headers,
                content=body,
                extensions={"timeout": self._timeout.as_dict()},
            )
        except (httpx.InvalidURL, ValueError, TypeError) as exc:
            raise ProxyRequestError(str(exc), details={"reason": "url"}) from exc

    async def _send(self, outbound: httpx.Request, deadline: float) -> httpx.Response:
        try:
            async with asyncio.timeout_at(deadline):
                return await self._http.send(outbound, stream=True, follow_redirects=False)
        except TimeoutError as exc:
            raise UpstreamUnavailable(
                f"{outbound.method} {self._target_url}: timed out after {self._timeout_s:g}s",
                details={"error_type": "TimeoutError"},
            ) from exc
        except httpx.HTTPError as exc:
            raise UpstreamUnavailable(
                f"{outbound.method} {self._target_url}: {str(exc) or type(exc).__name__}",
                details={"error_type": type(exc).__name__},
            ) from exc

    async def _relay(
        self, upstream: httpx.Response, method: str, deadline: float
    ) -> AsyncIterator[bytes]:
        chunks = upstream.aiter_raw()
        try:
            while True:
                # Bound each read only; the deadline must not fire while the
                # consumer holds a yielded chunk.
                try:
                    async with asyncio.timeout_at(deadline):
                        chunk = await anext(chunks)
                except StopAsyncIteration:
                    break
                yield chunk
        except (httpx.HTTPError, TimeoutError) as exc:
            logger.error(
                "proxy.body_copy_failed",
                extra={
                    "extra": {
                        "method": method,
                        "target": self._target_url,
                        "status": upstream.status_code,
                        "error": str(exc) or type(exc).__name__,
                    }
                },
            )
        finally:
            await upstream.aclose()

    def _fields(self, method: str, exc: DomainError) -> dict[str, object]:
        return {"method": method, "target": self._target_url, **exc.log_fields()}

    @staticmethod
    def _count(method: str, outcome: str) -> None:
        with suppress(Exception):
            get_proxy_requests_total().labels(method=method, outcome=outcome).inc()

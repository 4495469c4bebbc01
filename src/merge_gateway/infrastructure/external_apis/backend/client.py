# src/merge_gateway/infrastructure/external_apis/backend/client.py
# Copyright (c) Merge Gateway.
# SPDX-License-Identifier: MIT
"""Backend Document Client: read-path fetcher for one JSON backend.

This transport is framework-agnostic and provides:

* Async HTTP GET (httpx) with one overall deadline per call (default 4 s)
  covering connect, redirects, headers and the whole body. Redirects are
  followed up to the client limit.
* Strict decoding into a :class:`JsonValue` object document.
* Silent degradation: every failure collapses to the empty document ``{}``.
* Prometheus metrics per backend (outcome counter + latency histogram).

Failure policy:
    A non-2xx status is *not* a failure: the body is still read and decoded.
    Transport errors (including timeouts), body-read errors, invalid JSON and
    non-object top-level values are failures. They are logged as
    ``backend.fetch_failed`` and the caller receives ``{}``; nothing is raised
    and nothing is retried.
"""

from __future__ import annotations

import asyncio
import time
from contextlib import suppress
from dataclasses import dataclass
from typing import Final

import httpx

from merge_gateway.domain.entities.json_value import JsonValue, decode_document
from merge_gateway.domain.exceptions.gateway import DocumentDecodeError
from merge_gateway.infrastructure.logging.logger import get_json_logger
from merge_gateway.infrastructure.observability.metrics import (
    get_backend_fetch_duration_seconds,
    get_backend_fetch_total,
)

logger = get_json_logger(__name__)

_DEFAULT_TIMEOUT: Final[float] = 4.0


@dataclass(frozen=True, slots=True)
class FetchOutcome:
    """Result of a single fetch before it is collapsed to a document.

    Attributes:
        document: Decoded document on success, otherwise ``None``.
        reason: Failure class on error (``transport``, ``read``, ``decode``).
        error: Human-readable error text on error.
    """

    document: JsonValue | None = None
    reason: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.document is not None

    def value_or_empty(self) -> JsonValue:
        """Return the document, or ``{}`` if the fetch failed."""
        return self.document if self.document is not None else JsonValue.empty_object()


class BackendDocumentClient:
    """Fetch and decode the JSON document served by one backend."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        *,
        backend: str,
        timeout_s: float | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            http: ``httpx.AsyncClient`` dedicated to this backend. Ownership
                stays with the caller (the bootstrap closes it).
            backend: Label used in logs and metrics (``primary``/``secondary``).
            timeout_s: Per-request timeout in seconds (default ``4.0``).
        """
        self._http = http
        self._backend = backend
        self._timeout = float(timeout_s) if timeout_s is not None else _DEFAULT_TIMEOUT

    @property
    def backend(self) -> str:
        return self._backend

    async def fetch(self, url: str) -> JsonValue:
        """Return the backend's document, or ``{}`` on any failure.

        Args:
            url: Absolute backend URL.

        Returns:
            The decoded object document, or the empty object.
        """
        start = time.perf_counter()
        outcome = await self._attempt(url)
        elapsed = time.perf_counter() - start

        with suppress(Exception):
            get_backend_fetch_duration_seconds().labels(backend=self._backend).observe(elapsed)
            get_backend_fetch_total().labels(
                backend=self._backend, outcome="ok" if outcome.ok else "error"
            ).inc()

        if not outcome.ok:
            logger.warning(
                "backend.fetch_failed",
                extra={
                    "extra": {
                        "backend": self._backend,
                        "url": url,
                        "reason": outcome.reason,
                        "error": outcome.error,
                        "elapsed_ms": round(elapsed * 1000.0, 2),
                    }
                },
            )
        return outcome.value_or_empty()

    async def _attempt(self, url: str) -> FetchOutcome:
        try:
            async with asyncio.timeout(self._timeout):
                return await self._read(url)
        except TimeoutError:
            return FetchOutcome(reason="transport", error=f"timed out after {self._timeout:g}s")

    async def _read(self, url: str) -> FetchOutcome:
        try:
            async with self._http.stream(
                "GET", url, timeout=self._timeout, follow_redirects=True
            ) as response:
                try:
                    body = await response.aread()
                except httpx.HTTPError as exc:
                    return FetchOutcome(reason="read", error=str(exc) or type(exc).__name__)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            return FetchOutcome(reason="transport", error=str(exc) or type(exc).__name__)

        try:
            document = decode_document(body)
        except DocumentDecodeError as exc:
            detail = exc.details.get("error") or exc.details.get("got")
            return FetchOutcome(reason="decode", error=f"{exc} ({detail})" if detail else str(exc))

        logger.debug(
            "backend.fetch_ok",
            extra={
                "extra": {
                    "backend": self._backend,
                    "url": url,
                    "status": response.status_code,
                    "bytes": len(body),
                }
            },
        )
        return FetchOutcome(document=document)

# src/merge_gateway/domain/exceptions/gateway.py
# Copyright (c) Merge Gateway.
# SPDX-License-Identifier: MIT
"""
Gateway Domain Exceptions

Purpose:
    Error conditions raised while reading backend documents or forwarding
    write requests. Each error carries a stable ``code``, the HTTP status it
    maps to at the boundary and structured ``details`` for logging.

    The read path recovers from ``DocumentDecodeError`` inside the fetcher
    (the backend counts as ``{}``); only the write-path errors ever reach a
    caller, as plain-text 400/502 responses.

Layer: domain/exceptions
"""
from __future__ import annotations

from typing import Any, ClassVar


class DomainError(Exception):
    """Base class for gateway errors with a deterministic HTTP mapping."""

    code: ClassVar[str] = "DOMAIN_ERROR"
    http_status: ClassVar[int] = 500

    def __init__(self, message: str = "", *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details: dict[str, Any] = dict(details) if details else {}

    def log_fields(self) -> dict[str, Any]:
        """Return ``code`` and ``details`` flattened for a structured log record."""
        return {"code": self.code, **self.details}


class DocumentDecodeError(DomainError):
    """Backend body is not strict JSON or its top-level value is not an object."""

    code = "DOCUMENT_DECODE_ERROR"
    http_status = 502


class ProxyRequestError(DomainError):
    """Outbound proxy request could not be constructed."""

    code = "PROXY_REQUEST_INVALID"
    http_status = 400


class UpstreamUnavailable(DomainError):
    """Write backend could not be reached, failed mid-exchange or timed out."""

    code = "UPSTREAM_UNAVAILABLE"
    http_status = 502

# src/merge_gateway/adapters/presenters/merged_document_presenter.py
# Copyright (c) Merge Gateway.
# SPDX-License-Identifier: MIT
"""Merged document presenter.

Purpose:
    Serialize the merged :class:`JsonValue` into the HTTP response of the
    read path.

Contract:
    * ``200`` with ``Content-Type: application/json`` and compact JSON.
    * A value that cannot be encoded yields ``500`` with the standard error
      envelope; the failure is logged as ``merge.encode_failed``.

Layer:
    adapters/presenters
"""

from __future__ import annotations

import json

from fastapi import Request
from starlette.responses import Response

from merge_gateway.domain.entities.json_value import JsonValue
from merge_gateway.infrastructure.http.errors import internal_error_response
from merge_gateway.infrastructure.logging.logger import get_json_logger

_LOGGER = get_json_logger(__name__)

JSON_MEDIA_TYPE = "application/json"


def encode_document(value: JsonValue) -> bytes:
    """Return the compact UTF-8 JSON encoding of ``value``.

    Raises:
        ValueError: If the value holds a non-finite number.
        TypeError: If the value holds data JSON cannot represent.
        RecursionError: If the value nests deeper than the encoder supports.
    """
    return json.dumps(
        value.to_python(),
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    ).encode("utf-8")


def present_merged_document(value: JsonValue, request: Request | None = None) -> Response:
    """Build the read-path response for a merged document."""
    try:
        body = encode_document(value)
    except (ValueError, TypeError, RecursionError) as exc:
        _LOGGER.error(
            "merge.encode_failed",
            exc_info=exc,
            extra={"extra": {"kind": value.kind.value}},
        )
        return internal_error_response(request)
    return Response(content=body, status_code=200, media_type=JSON_MEDIA_TYPE)

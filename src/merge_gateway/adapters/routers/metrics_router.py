# src/merge_gateway/adapters/routers/metrics_router.py
# Copyright (c) Merge Gateway.
# SPDX-License-Identifier: MIT
"""Prometheus scrape endpoint (`/metrics`).

This router exposes a text-format Prometheus endpoint and *warms* the lazily
created gateway collectors so their series appear on the very first scrape
(cold start), before any backend fetch or proxied request has happened.

Layer:
    adapters/routers
"""

from __future__ import annotations

from collections.abc import Callable

from fastapi import APIRouter, Response
import prometheus_client as prom
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from merge_gateway.infrastructure.logging.logger import get_json_logger
from merge_gateway.infrastructure.observability.metrics import (
    get_backend_fetch_duration_seconds,
    get_backend_fetch_total,
    get_http_server_request_duration_seconds,
    get_proxy_requests_total,
)

logger = get_json_logger(__name__)
router = APIRouter()


def _ensure_registered(getter: Callable[[], object], name: str) -> None:
    """Create the collector through its accessor."""
    try:
        getter()
    except Exception as exc:  # pragma: no cover
        logger.debug(
            "metrics_router: failed registering collector",
            extra={"extra": {"metric": name, "error": str(exc)}},
        )


@router.get("/metrics", include_in_schema=False)
async def metrics_probe() -> Response:
    """Expose Prometheus metrics."""
    _ensure_registered(get_backend_fetch_total, "gateway_backend_fetch_total")
    _ensure_registered(get_backend_fetch_duration_seconds, "gateway_backend_fetch_duration_seconds")
    _ensure_registered(get_proxy_requests_total, "gateway_proxy_requests_total")
    _ensure_registered(
        get_http_server_request_duration_seconds, "http_server_request_duration_seconds"
    )

    return Response(content=generate_latest(prom.REGISTRY), media_type=CONTENT_TYPE_LATEST)

# Copyright (c) Merge Gateway.
# SPDX-License-Identifier: MIT
"""Prometheus metrics utilities (registry-aware, hot-reload safe).

Every collector is exposed through an accessor that returns a *singleton*
bound to the **current** ``prometheus_client.REGISTRY``:

- Safe under hot reload and tests that swap the default registry.
- No duplicate-registration errors.
- Cache automatically resets when the active registry changes.

Gateway metrics:
    * ``gateway_backend_fetch_total{backend,outcome}``: read-path fetches,
      ``outcome`` is ``ok`` or ``error`` (an error degrades to ``{}``).
    * ``gateway_backend_fetch_duration_seconds{backend}``: fetch latency.
    * ``gateway_proxy_requests_total{method,outcome}``: write-path outcomes,
      ``ok``, ``bad_request`` or ``upstream_error``.
    * ``http_server_request_duration_seconds{method,handler,status}``:
      inbound latency recorded by ``RequestLatencyMiddleware``.

Example:
    get_backend_fetch_total().labels(backend="primary", outcome="ok").inc()
"""

from __future__ import annotations

import threading
from contextlib import suppress
from typing import Final

import prometheus_client as prom
from prometheus_client import Counter, Histogram

__all__ = [
    "get_backend_fetch_duration_seconds",
    "get_backend_fetch_total",
    "get_http_server_request_duration_seconds",
    "get_proxy_requests_total",
]

# Common histogram buckets (seconds); the top buckets cover the fetch/proxy timeouts.
_BUCKETS: Final[tuple[float, ...]] = (
    0.005,
    0.010,
    0.025,
    0.050,
    0.100,
    0.250,
    0.500,
    1.000,
    2.500,
    5.000,
    10.000,
)

_registry_id: int | None = None
_cache: dict[str, Counter | Histogram] = {}
_lock = threading.RLock()


def _ensure_registry() -> None:
    """Reset the cache if the active default registry changed."""
    global _registry_id
    with _lock:
        rid = id(prom.REGISTRY)
        if _registry_id != rid:
            _cache.clear()
            _registry_id = rid


def _lookup_existing(
    name: str, kind: type[Counter] | type[Histogram]
) -> Counter | Histogram | None:
    """Return a collector already registered under ``name`` on the active registry."""
    with _lock, suppress(Exception):
        mapping = getattr(prom.REGISTRY, "_names_to_collectors", None)
        if isinstance(mapping, dict):
            col = mapping.get(name)
            if isinstance(col, kind):
                return col
    return None


def _get_or_create_hist(
    name: str,
    help_text: str,
    *,
    buckets: tuple[float, ...] = _BUCKETS,
    labelnames: tuple[str, ...] = (),
) -> Histogram:
    """Get or create a registry-bound ``Histogram`` with stable identity.

    Strategy:
    1. Return from module cache if present for the active registry.
    2. If the registry already has a collector by this name, reuse it.
    3. Otherwise, register a new collector on the active registry.

    Args:
        name: Metric name (snake_case).
        help_text: Human-readable description.
        buckets: Histogram buckets in seconds.
        labelnames: Label names.

    Returns:
        Histogram: Bound to ``prom.REGISTRY``.
    """
    _ensure_registry()
    with _lock:
        cached = _cache.get(name)
        if isinstance(cached, Histogram):
            return cached
        existing = _lookup_existing(name, Histogram)
        if not isinstance(existing, Histogram):
            existing = Histogram(
                name, help_text, labelnames, buckets=buckets, registry=prom.REGISTRY
            )
        _cache[name] = existing
        return existing


def _get_or_create_counter(
    name: str,
    help_text: str,
    *,
    labelnames: tuple[str, ...] = (),
) -> Counter:
    """Get or create a registry-bound ``Counter`` with stable identity.

    ``prometheus_client`` registers counters under their base name (without the
    ``_total`` suffix), so lookups strip it.
    """
    _ensure_registry()
    with _lock:
        cached = _cache.get(name)
        if isinstance(cached, Counter):
            return cached
        existing = _lookup_existing(name, Counter) or _lookup_existing(
            name.removesuffix("_total"), Counter
        )
        if not isinstance(existing, Counter):
            existing = Counter(name, help_text, labelnames, registry=prom.REGISTRY)
        _cache[name] = existing
        return existing


# ---------------------------------------------------------------------------
# Accessors


def get_backend_fetch_total() -> Counter:
    """Counter of read-path backend fetches by backend and outcome."""
    return _get_or_create_counter(
        "gateway_backend_fetch_total",
        "Backend document fetches on the read path.",
        labelnames=("backend", "outcome"),
    )


def get_backend_fetch_duration_seconds() -> Histogram:
    """Histogram of backend fetch latency by backend."""
    return _get_or_create_hist(
        "gateway_backend_fetch_duration_seconds",
        "Backend document fetch latency (seconds).",
        labelnames=("backend",),
    )


def get_proxy_requests_total() -> Counter:
    """Counter of proxied write requests by method and outcome."""
    return _get_or_create_counter(
        "gateway_proxy_requests_total",
        "Write requests forwarded to the secondary backend.",
        labelnames=("method", "outcome"),
    )


def get_http_server_request_duration_seconds() -> Histogram:
    """Canonical server request-duration histogram.

    Labels:
        method: Uppercased HTTP method.
        handler: Templated route or raw path.
        status: Response code as string.
    """
    return _get_or_create_hist(
        "http_server_request_duration_seconds",
        "Request duration (seconds), server-side histogram.",
        labelnames=("method", "handler", "status"),
    )

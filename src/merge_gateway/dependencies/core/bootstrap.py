# src/merge_gateway/dependencies/core/bootstrap.py
# Copyright (c) Merge Gateway.
# SPDX-License-Identifier: MIT
"""Core bootstrap for infrastructure (HTTP clients, gateway wiring).

This module owns the lifecycle of the outbound HTTP clients used by the
gateway. It is intentionally thin: configuration is read from Settings, and
all heavy lifting is delegated to the infrastructure modules.

The single public surface is :func:`bootstrap`, an async context manager that
yields a state object with the resolved Settings, the three HTTP clients and
the wired :class:`Dispatcher`.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from http.cookiejar import CookieJar, DefaultCookiePolicy
from typing import Any, Final

import httpx
from fastapi import FastAPI

from merge_gateway.adapters.controllers.dispatcher import Dispatcher
from merge_gateway.application.use_cases.get_merged_document import GetMergedDocument
from merge_gateway.config.settings import Settings, get_settings
from merge_gateway.infrastructure.external_apis.backend.client import BackendDocumentClient
from merge_gateway.infrastructure.logging.logger import get_json_logger
from merge_gateway.infrastructure.proxy.forwarder import ProxyForwarder

logger = get_json_logger(__name__)

_MAX_READ_REDIRECTS: Final[int] = 10


def _http_client(
    transport: httpx.AsyncBaseTransport | None, timeout_s: float, **kwargs: Any
) -> httpx.AsyncClient:
    """Return a client that never stores or replays cookies.

    An empty ``allowed_domains`` policy rejects every ``Set-Cookie``, so one
    backend response cannot leak cookies into later calls.
    """
    jar = CookieJar(policy=DefaultCookiePolicy(allowed_domains=[]))
    return httpx.AsyncClient(transport=transport, timeout=timeout_s, cookies=jar, **kwargs)


@dataclass
class BootstrapState:
    """State yielded by the bootstrap context manager."""

    settings: Settings
    primary_client: httpx.AsyncClient
    secondary_client: httpx.AsyncClient
    proxy_client: httpx.AsyncClient
    dispatcher: Dispatcher


def build_dispatcher(
    settings: Settings,
    *,
    primary_client: httpx.AsyncClient,
    secondary_client: httpx.AsyncClient,
    proxy_client: httpx.AsyncClient,
) -> Dispatcher:
    """Wire fetchers, use case and forwarder into a :class:`Dispatcher`."""
    use_case = GetMergedDocument(
        primary=BackendDocumentClient(
            primary_client, backend="primary", timeout_s=settings.fetch_timeout_s
        ),
        primary_url=settings.primary_url,
        secondary=BackendDocumentClient(
            secondary_client, backend="secondary", timeout_s=settings.fetch_timeout_s
        ),
        secondary_url=settings.secondary_url,
    )
    forwarder = ProxyForwarder(
        proxy_client, target_url=settings.secondary_url, timeout_s=settings.proxy_timeout_s
    )
    return Dispatcher(use_case, forwarder)


@asynccontextmanager
async def bootstrap(
    app: FastAPI,
    settings: Settings | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> AsyncGenerator[BootstrapState, None]:
    """Initialize and teardown shared infrastructure.

    Responsibilities:
        * Resolve application settings.
        * Create one ``httpx.AsyncClient`` per backend for the read path and a
          separate client for the write path, so a hung backend never holds
          connections the other flow needs. No client keeps cookies.
        * Ensure all clients are closed on exit, even on error.

    Args:
        app: FastAPI application instance (unused today, reserved for future hooks).
        settings: Explicit settings; defaults to :func:`get_settings`.
        transport: Optional transport shared by all clients (tests inject
            ``httpx.MockTransport`` here).

    Yields:
        BootstrapState: Resolved settings, HTTP clients and dispatcher.
    """
    settings = settings or get_settings()
    logger.info("bootstrap.start")

    primary_client = _http_client(
        transport, settings.fetch_timeout_s, max_redirects=_MAX_READ_REDIRECTS
    )
    secondary_client = _http_client(
        transport, settings.fetch_timeout_s, max_redirects=_MAX_READ_REDIRECTS
    )
    proxy_client = _http_client(transport, settings.proxy_timeout_s)

    state = BootstrapState(
        settings=settings,
        primary_client=primary_client,
        secondary_client=secondary_client,
        proxy_client=proxy_client,
        dispatcher=build_dispatcher(
            settings,
            primary_client=primary_client,
            secondary_client=secondary_client,
            proxy_client=proxy_client,
        ),
    )

    try:
        yield state
    finally:
        for name, client in (
            ("primary", primary_client),
            ("secondary", secondary_client),
            ("proxy", proxy_client),
        ):
            try:
                await client.aclose()
            except Exception:
                logger.exception(
                    "bootstrap.http_client_close_failed", extra={"extra": {"client": name}}
                )

        logger.info("bootstrap.stop")

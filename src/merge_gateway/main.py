# src/merge_gateway/main.py
# Copyright (c) Merge Gateway.
# SPDX-License-Identifier: MIT
"""
Application Entry (Adapters Bootstrap)

Synopsis:
    FastAPI bootstrap that wires middleware, exception handlers and the two
    routers (gateway + metrics). Provides an application factory
    (`create_app`) and the `merge-gateway` console script (`run`).

Design:
    • Bootstrap only (no business logic): routers + middleware + handlers.
    • Lifespan creates the backend/proxy HTTP clients and tears them down safely.
    • No response compression and no CORS layer: proxied responses must reach
      the caller exactly as the backend produced them.
    • Observability:
        - Root JSON logging configured by the factory.
        - Request id, access log and latency middleware on every request.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager

import httpx
from fastapi import FastAPI
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.requests import Request
from starlette.responses import Response as StarletteResponse

from merge_gateway import __version__
from merge_gateway.adapters.controllers.dispatcher import Dispatcher
from merge_gateway.adapters.routers import build_merge_route, metrics_router
from merge_gateway.config.settings import Settings, get_settings
from merge_gateway.dependencies.core.bootstrap import bootstrap
from merge_gateway.infrastructure.http.errors import (
    handle_http_exception,
    handle_unhandled_exception,
)
from merge_gateway.infrastructure.logging.logger import (
    configure_root_logging,
    get_json_logger,
)
from merge_gateway.infrastructure.middleware.access_log import AccessLogMiddleware
from merge_gateway.infrastructure.middleware.request_id import RequestIdMiddleware
from merge_gateway.infrastructure.middleware.request_metrics import (
    RequestLatencyMiddleware,
)

logger = get_json_logger(__name__)


# -----------------------------------------------------------------------------
# Lifespan
# -----------------------------------------------------------------------------
def _runtime_lifespan(
    settings: Settings, transport: httpx.AsyncBaseTransport | None
) -> Callable[[FastAPI], AbstractAsyncContextManager[None]]:
    """Build the lifespan bound to ``settings`` (and an optional test transport)."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        async with bootstrap(app, settings, transport=transport) as state:
            app.state.settings = state.settings
            app.state.dispatcher = state.dispatcher
            yield

    return lifespan


# -----------------------------------------------------------------------------
# Middleware
# -----------------------------------------------------------------------------
def _flow_of(method: str) -> str:
    return Dispatcher.classify(method).value


def _attach_middlewares(app: FastAPI, settings: Settings) -> None:
    """Attach core middleware.

        1. RequestIdMiddleware (correlation IDs)
        2. AccessLogMiddleware (structured access logs)
        3. RequestLatencyMiddleware (metrics, when enabled)

    Args:
        app: FastAPI application.
        settings: Runtime settings for toggles.
    """
    app.add_middleware(RequestIdMiddleware, echo=settings.echo_request_id)

    # Access log should see request_id on request.state and contextvars.
    app.add_middleware(AccessLogMiddleware, route_path=settings.route_path, classify=_flow_of)

    if settings.metrics_enabled:
        app.add_middleware(RequestLatencyMiddleware)


def _patch_exception_handlers(app: FastAPI) -> None:
    """Patch default exception handlers with structured equivalents."""

    async def _http_error_handler(request: Request, exc: Exception) -> StarletteResponse:
        if not isinstance(exc, StarletteHTTPException):
            raise exc
        return await handle_http_exception(request, exc)

    async def _unhandled_error_handler(request: Request, exc: Exception) -> StarletteResponse:
        return await handle_unhandled_exception(request, exc)

    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)


# -----------------------------------------------------------------------------
# App factory
# -----------------------------------------------------------------------------
def create_app(
    settings: Settings | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Explicit settings; defaults to :func:`get_settings`.
        transport: Optional ``httpx`` transport for every outbound client.

    Returns:
        FastAPI: Fully configured application instance.

    Raises:
        RuntimeError: If settings are not given and the environment is invalid.
    """
    settings = settings or get_settings()
    configure_root_logging(settings.log_level, service=settings.service_name)

    service_version = settings.service_version or __version__

    # The gateway path is operator-chosen, so the docs routes stay off.
    app = FastAPI(
        title="merge-gateway",
        version=service_version,
        description="Deep-merges two JSON backends on read, proxies writes.",
        lifespan=_runtime_lifespan(settings, transport),
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    _patch_exception_handlers(app)
    _attach_middlewares(app, settings)

    if settings.metrics_enabled:
        app.include_router(metrics_router)

    app.router.routes.append(build_merge_route(settings.route_path))

    logger.info(
        "gateway_startup",
        extra={
            "extra": {
                "service": settings.service_name,
                "env": settings.environment.value,
                "version": service_version,
                "primary_url": settings.primary_url,
                "primary_mode": "read-only",
                "secondary_url": settings.secondary_url,
                "secondary_mode": "read-write",
                "listen": settings.merge_listen,
                "route_path": settings.route_path,
            }
        },
    )
    return app


def run() -> None:
    """Console entry point: validate settings and serve with uvicorn.

    Raises:
        SystemExit: With status ``1`` when configuration is invalid.
    """
    import uvicorn

    configure_root_logging()
    try:
        settings = get_settings()
    except RuntimeError as exc:
        logger.critical("gateway_config_invalid", extra={"extra": {"error": str(exc)}})
        raise SystemExit(1) from exc

    uvicorn.run(
        create_app(settings),
        host=settings.listen_host,
        port=settings.listen_port,
        log_config=None,
    )


if __name__ == "__main__":  # pragma: no cover
    run()

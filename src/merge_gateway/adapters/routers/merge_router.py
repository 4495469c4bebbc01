# Copyright (c) Merge Gateway.
# SPDX-License-Identifier: MIT
"""
Merge Router.

Summary:
    The single gateway endpoint. ``GET`` returns the merged document of both
    backends; every other method, extension methods such as ``PROPFIND`` or
    ``PURGE`` included, is proxied to the secondary backend and answered with
    its response unchanged.

Notes:
    FastAPI routes are bound to an explicit method list, so the gateway is a
    plain Starlette route without one. It still records itself on the scope
    (as ``APIRoute`` does) so the latency middleware labels it by template.

Layer:
    adapters/routers
"""
from __future__ import annotations

from typing import Any

from fastapi import Request
from starlette.responses import Response
from starlette.routing import Match, Route
from starlette.types import Scope

from merge_gateway.dependencies.gateway import get_dispatcher


class GatewayRoute(Route):
    """Starlette route that matches its path for any HTTP method."""

    def __init__(self, path: str, endpoint: Any, *, name: str | None = None) -> None:
        super().__init__(path, endpoint, methods=None, name=name, include_in_schema=False)

    def matches(self, scope: Scope) -> tuple[Match, Scope]:
        match, child_scope = super().matches(scope)
        if match is not Match.NONE:
            child_scope["route"] = self
        return match, child_scope


async def gateway(request: Request) -> Response:
    """Dispatch the request to the merged read or the proxied write flow."""
    return await get_dispatcher(request).handle(request)


def build_route(route_path: str) -> GatewayRoute:
    """Return the gateway route for ``route_path``.

    Append it to ``app.router.routes``: ``include_router`` would rebuild it as a
    plain ``Route``.
    """
    return GatewayRoute(route_path, gateway, name="gateway")

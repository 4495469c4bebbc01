# src/merge_gateway/dependencies/gateway.py
# Copyright (c) Merge Gateway.
# SPDX-License-Identifier: MIT
"""Dependency wiring for the gateway route.

The :class:`Dispatcher` is built once per process by the lifespan bootstrap
and stored on ``app.state``; this provider hands it to the router.

Layer:
    dependencies
"""

from __future__ import annotations

from fastapi import Request

from merge_gateway.adapters.controllers.dispatcher import Dispatcher


def get_dispatcher(request: Request) -> Dispatcher:
    """Return the application's dispatcher.

    Raises:
        RuntimeError: If the lifespan bootstrap has not run.
    """
    dispatcher = getattr(request.app.state, "dispatcher", None)
    if not isinstance(dispatcher, Dispatcher):
        raise RuntimeError("gateway dispatcher is not initialized (lifespan not started)")
    return dispatcher

"""Routers Package Export (Adapters Layer).

Purpose:
    Provide stable, explicit exports for the gateway route factory and the
    metrics router. The FastAPI application imports these names from this
    package during startup.

Layer:
    adapters/routers
"""

from __future__ import annotations

from .merge_router import build_route as build_merge_route
from .metrics_router import router as metrics_router

__all__ = ["build_merge_route", "metrics_router"]

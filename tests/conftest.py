# tests/conftest.py
from __future__ import annotations

from collections.abc import Callable, Iterator

import httpx
import prometheus_client as prom
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from merge_gateway.config.settings import Settings, get_settings
from merge_gateway.main import create_app

PRIMARY_URL = "http://primary.test/doc"
SECONDARY_URL = "http://secondary.test/doc"
ROUTE_PATH = "/traefik-merged"

type Handler = Callable[[httpx.Request], httpx.Response]


@pytest.fixture(autouse=True)
def _gateway_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Provide a valid environment and a fresh settings cache for every test."""
    monkeypatch.setenv("MERGE_ENDPOINTS", f"{PRIMARY_URL},{SECONDARY_URL}")
    monkeypatch.setenv("ENVIRONMENT", "test")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def _fresh_registry(monkeypatch: pytest.MonkeyPatch) -> None:
    """Swap in an empty Prometheus registry so counters start from zero."""
    monkeypatch.setattr(prom, "REGISTRY", prom.CollectorRegistry(auto_describe=True))


@pytest.fixture
def settings() -> Settings:
    return Settings(MERGE_ENDPOINTS=f"{PRIMARY_URL},{SECONDARY_URL}")  # type: ignore[call-arg]


@pytest.fixture
def make_client(settings: Settings) -> Iterator[Callable[[Handler], TestClient]]:
    """Return a factory building a started TestClient whose backends are served by ``handler``."""
    clients: list[TestClient] = []

    def _make(handler: Handler) -> TestClient:
        app: FastAPI = create_app(settings, transport=httpx.MockTransport(handler))
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client

    yield _make

    for client in clients:
        client.__exit__(None, None, None)

from __future__ import annotations

from typing import Any

import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient
from starlette.responses import PlainTextResponse, Response

from merge_gateway.adapters.controllers.dispatcher import Dispatcher, DispatchMode
from merge_gateway.domain.entities.json_value import JsonValue


@pytest.mark.parametrize(
    ("method", "mode"),
    [
        ("GET", DispatchMode.READ),
        ("HEAD", DispatchMode.WRITE),
        ("POST", DispatchMode.WRITE),
        ("PUT", DispatchMode.WRITE),
        ("PATCH", DispatchMode.WRITE),
        ("DELETE", DispatchMode.WRITE),
        ("OPTIONS", DispatchMode.WRITE),
        ("get", DispatchMode.WRITE),
    ],
)
def test_classify_by_method(method: str, mode: DispatchMode) -> None:
    assert Dispatcher.classify(method) is mode


class _FakeUseCase:
    def __init__(self) -> None:
        self.calls = 0

    async def execute(self) -> JsonValue:
        self.calls += 1
        return JsonValue.from_python({"merged": True})


class _FakeForwarder:
    def __init__(self) -> None:
        self.methods: list[str] = []

    async def forward(self, request: Request) -> Response:
        self.methods.append(request.method)
        return PlainTextResponse("forwarded", status_code=201)


def _app(dispatcher: Dispatcher) -> FastAPI:
    app = FastAPI()

    @app.api_route("/m", methods=["GET", "HEAD", "POST", "DELETE"])
    async def route(request: Request) -> Response:
        return await dispatcher.handle(request)

    return app


def test_get_runs_use_case_and_presenter() -> None:
    uc, fwd = _FakeUseCase(), _FakeForwarder()
    presented: list[Any] = []

    def presenter(value: JsonValue, request: Request | None) -> Response:
        presented.append(value.to_python())
        return Response(b"{}", media_type="application/json")

    client = TestClient(_app(Dispatcher(uc, fwd, presenter)))  # type: ignore[arg-type]
    r = client.get("/m")

    assert r.status_code == 200
    assert uc.calls == 1
    assert presented == [{"merged": True}]
    assert fwd.methods == []


@pytest.mark.parametrize("method", ["POST", "DELETE", "HEAD"])
def test_other_methods_are_forwarded(method: str) -> None:
    uc, fwd = _FakeUseCase(), _FakeForwarder()
    client = TestClient(_app(Dispatcher(uc, fwd)))  # type: ignore[arg-type]

    r = client.request(method, "/m")

    assert r.status_code == 201
    assert fwd.methods == [method]
    assert uc.calls == 0

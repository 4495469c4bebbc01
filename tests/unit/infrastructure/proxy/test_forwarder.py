# Copyright (c) Merge Gateway.
# SPDX-License-Identifier: MIT
"""Unit tests for the streaming proxy forwarder."""

from __future__ import annotations

import asyncio
import gzip
import time
from collections.abc import AsyncIterator

import httpx
import prometheus_client as prom
import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient
from starlette.responses import Response

from merge_gateway.domain.exceptions.gateway import ProxyRequestError
from merge_gateway.infrastructure.proxy.forwarder import ProxyForwarder

TARGET = "http://secondary.test/doc"


def _client(  # type: ignore[no-untyped-def]
    handler, target: str = TARGET, timeout_s: float = 2.0
) -> TestClient:
    forwarder = ProxyForwarder(
        httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        target_url=target,
        timeout_s=timeout_s,
    )
    app = FastAPI()

    @app.api_route("/proxy", methods=["POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"])
    async def proxy(request: Request) -> Response:
        return await forwarder.forward(request)

    return TestClient(app)


def _proxy_count(method: str, outcome: str) -> float | None:
    return prom.REGISTRY.get_sample_value(
        "gateway_proxy_requests_total", {"method": method, "outcome": outcome}
    )


def test_delete_with_body_is_relayed_verbatim() -> None:
    seen: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["url"] = str(request.url)
        seen["host"] = request.headers.get("host")
        seen["dup"] = request.headers.get_list("x-dup")
        seen["custom"] = request.headers.get("x-custom")
        seen["body"] = request.content
        return httpx.Response(
            202,
            headers=[
                ("X-Upstream", "secondary"),
                ("Set-Cookie", "a=1"),
                ("Set-Cookie", "b=2"),
                ("Content-Type", "application/vnd.test+json"),
            ],
            content=b'{"deleted":true}',
        )

    r = _client(handler).request(
        "DELETE",
        "/proxy",
        content=b'{"id":7}',
        headers=[("X-Custom", "v"), ("X-Dup", "1"), ("X-Dup", "2")],
    )

    assert seen == {
        "method": "DELETE",
        "url": TARGET,
        "host": "secondary.test",
        "dup": ["1", "2"],
        "custom": "v",
        "body": b'{"id":7}',
    }
    assert r.status_code == 202
    assert r.content == b'{"deleted":true}'
    assert r.headers["x-upstream"] == "secondary"
    assert r.headers["content-type"] == "application/vnd.test+json"
    assert r.headers.get_list("set-cookie") == ["a=1", "b=2"]
    assert _proxy_count("DELETE", "ok") == 1.0


def test_upstream_error_status_is_passed_through() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(409, text="conflict")

    r = _client(handler).post("/proxy", content=b"x")
    assert r.status_code == 409
    assert r.text == "conflict"


def test_compressed_body_is_not_decoded_in_transit() -> None:
    packed = gzip.compress(b"payload")

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, headers={"Content-Encoding": "gzip"}, content=packed)

    r = _client(handler).put("/proxy", content=b"{}")
    assert r.headers["content-encoding"] == "gzip"
    assert r.headers["content-length"] == str(len(packed))
    # The test client decodes; a double-decoded or re-encoded body would fail here.
    assert r.content == b"payload"


def test_transport_failure_maps_to_502() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    r = _client(handler).post("/proxy", content=b"{}")
    assert r.status_code == 502
    assert r.headers["content-type"].startswith("text/plain")
    assert "connection refused" in r.text
    assert _proxy_count("POST", "upstream_error") == 1.0


def test_timeout_maps_to_502() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    r = _client(handler).patch("/proxy", content=b"{}")
    assert r.status_code == 502


def test_unusable_target_url_maps_to_400() -> None:
    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover
        raise AssertionError("must not be called")

    r = _client(handler, target="http://[zz::1]/doc").post("/proxy", content=b"{}")
    assert r.status_code == 400
    assert r.headers["content-type"].startswith("text/plain")
    assert _proxy_count("POST", "bad_request") == 1.0


def test_build_request_rejects_invalid_method_token() -> None:
    forwarder = ProxyForwarder(httpx.AsyncClient(), target_url=TARGET)
    with pytest.raises(ProxyRequestError) as excinfo:
        forwarder.build_request("BAD METHOD", [], b"")
    assert excinfo.value.details == {"reason": "method"}


def test_build_request_drops_only_host() -> None:
    forwarder = ProxyForwarder(httpx.AsyncClient(), target_url=TARGET)
    outbound = forwarder.build_request(
        "POST",
        [(b"host", b"gateway.local"), (b"connection", b"keep-alive"), (b"x-a", b"1")],
        b"body",
    )
    assert outbound.headers["host"] == "secondary.test"
    assert outbound.headers["connection"] == "keep-alive"
    assert outbound.headers["x-a"] == "1"
    assert "user-agent" not in outbound.headers
    assert outbound.extensions["timeout"]["read"] == 10.0


class _FailingStream(httpx.AsyncByteStream):
    async def __aiter__(self) -> AsyncIterator[bytes]:
        yield b"part"
        raise httpx.ReadError("connection reset")


def test_body_copy_failure_is_logged_and_stream_ends(caplog: pytest.LogCaptureFixture) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, headers={"Content-Type": "text/plain"}, stream=_FailingStream())

    with caplog.at_level("ERROR"):
        r = _client(handler).post("/proxy", content=b"{}")

    assert r.status_code == 200
    assert r.content == b"part"
    assert any(rec.getMessage() == "proxy.body_copy_failed" for rec in caplog.records)


def test_slow_upstream_headers_hit_the_call_deadline() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(2.0)
        return httpx.Response(200)  # pragma: no cover

    started = time.perf_counter()
    r = _client(handler, timeout_s=0.2).post("/proxy", content=b"{}")

    assert time.perf_counter() - started < 1.5
    assert r.status_code == 502
    assert "timed out after 0.2s" in r.text
    assert _proxy_count("POST", "upstream_error") == 1.0


class _StallingStream(httpx.AsyncByteStream):
    async def __aiter__(self) -> AsyncIterator[bytes]:
        yield b"part"
        await asyncio.sleep(2.0)
        yield b"never"  # pragma: no cover


def test_deadline_during_body_ends_stream_and_logs(caplog: pytest.LogCaptureFixture) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, stream=_StallingStream())

    started = time.perf_counter()
    with caplog.at_level("ERROR"):
        r = _client(handler, timeout_s=0.2).post("/proxy", content=b"{}")

    assert time.perf_counter() - started < 1.5
    assert r.status_code == 200
    assert r.content == b"part"
    assert any(rec.getMessage() == "proxy.body_copy_failed" for rec in caplog.records)

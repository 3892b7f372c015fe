"""Unit tests for stubguard/server/headers.py: Starlette ⇄ exchange conversion."""

from __future__ import annotations

from typing import Any, Optional

import pytest
from starlette.requests import Request

from stubguard.models.exchange import ExchangeResponse, HeaderMultiMap
from stubguard.server.headers import (
    HOP_BY_HOP_HEADERS,
    build_exchange_request,
    build_http_response,
    request_target,
)

# ─── Helpers ──────────────────────────────────────────────────────────────────


def _request(
    method: str = "POST",
    path: str = "/ewyrys-epuc/v1.0/application",
    query: bytes = b"",
    headers: Optional[list[tuple[bytes, bytes]]] = None,
    body: bytes = b"",
) -> Request:
    scope: dict[str, Any] = {
        "type": "http",
        "method": method,
        "path": path,
        "raw_path": path.encode(),
        "query_string": query,
        "headers": headers or [],
        "scheme": "http",
        "server": ("test", 80),
        "http_version": "1.1",
    }

    async def receive() -> dict[str, Any]:
        return {"type": "http.request", "body": body, "more_body": False}

    return Request(scope, receive)


def _raw(response) -> list[tuple[str, str]]:
    return [(k.decode(), v.decode()) for k, v in response.raw_headers]


# ─── Request side ─────────────────────────────────────────────────────────────


class TestRequestTarget:
    def test_path_only(self) -> None:
        assert request_target(_request(path="/a/b")) == "/a/b"

    def test_path_with_query(self) -> None:
        assert request_target(_request(path="/a", query=b"x=1&y=2")) == "/a?x=1&y=2"


class TestBuildExchangeRequest:
    @pytest.mark.asyncio
    async def test_repeated_headers_kept_in_order(self) -> None:
        request = _request(
            headers=[(b"accept", b"text/plain"), (b"x-tag", b"a"), (b"x-tag", b"b")],
            body=b'{"businessKey": "k"}',
        )
        exchange = await build_exchange_request(request)

        assert exchange.method == "POST"
        assert exchange.headers.get_all("X-Tag") == ["a", "b"]
        assert exchange.body_text == '{"businessKey": "k"}'

    @pytest.mark.asyncio
    async def test_empty_body_is_none(self) -> None:
        exchange = await build_exchange_request(_request(method="GET", query=b"q=1"))
        assert exchange.body is None
        assert exchange.url == "/ewyrys-epuc/v1.0/application?q=1"
        assert exchange.path == "/ewyrys-epuc/v1.0/application"


# ─── Response side ────────────────────────────────────────────────────────────


class TestBuildHttpResponse:
    def test_status_body_and_multi_value_headers(self) -> None:
        exchange = ExchangeResponse(
            status=409,
            headers=HeaderMultiMap(
                [("Content-Type", "application/json"), ("Set-Cookie", "a=1"), ("Set-Cookie", "b=2")]
            ),
            body='{"error": "CONFLICT"}',
        )
        response = build_http_response(exchange)

        assert response.status_code == 409
        assert response.body == b'{"error": "CONFLICT"}'
        raw = _raw(response)
        assert ("content-type", "application/json") in raw
        assert [v for k, v in raw if k == "set-cookie"] == ["a=1", "b=2"]

    def test_hop_by_hop_headers_dropped(self) -> None:
        exchange = ExchangeResponse(
            status=200,
            headers=HeaderMultiMap(
                [("Connection", "close"), ("Transfer-Encoding", "chunked"), ("Content-Length", "999")]
            ),
            body="hi",
        )
        raw = _raw(build_http_response(exchange))
        assert ("content-length", "2") in raw
        assert not any(k in ("connection", "transfer-encoding") for k, _ in raw)
        assert "content-length" in HOP_BY_HOP_HEADERS

    def test_extra_headers_appended(self) -> None:
        exchange = ExchangeResponse(status=204, headers=HeaderMultiMap())
        raw = _raw(build_http_response(exchange, {"X-StubGuard-Exchange-ID": "01ABC"}))
        assert ("x-stubguard-exchange-id", "01ABC") in raw
        assert build_http_response(exchange).body == b""

"""Conversion between Starlette HTTP objects and exchange value objects.

  - build_exchange_request(): Starlette request → ExchangeRequest. Every header
    value is kept, in arrival order, including repeated headers.
  - build_http_response(): ExchangeResponse → Starlette Response. Repeated
    headers are written as separate header lines.

Hop-by-hop and framing headers (RFC 7230 §6.1) are never copied from a stub
onto the wire: Starlette computes content-length from the body it sends.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Request, Response

from stubguard.models.exchange import ExchangeRequest, ExchangeResponse, HeaderMultiMap

# ─── Constants ────────────────────────────────────────────────────────────────

HOP_BY_HOP_HEADERS: frozenset[str] = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailers",
        "transfer-encoding",
        "upgrade",
        "content-length",
    }
)

# ─── Public API ───────────────────────────────────────────────────────────────


def request_target(request: Request) -> str:
    """Path plus query string, as the client sent it."""
    query = request.url.query
    return f"{request.url.path}?{query}" if query else request.url.path


async def build_exchange_request(request: Request) -> ExchangeRequest:
    """Read the full request body once and freeze the request into an ExchangeRequest."""
    body: bytes = await request.body()
    headers = HeaderMultiMap(
        (name.decode("latin-1"), value.decode("latin-1"))
        for name, value in request.headers.raw
    )
    return ExchangeRequest(
        method=request.method,
        url=request_target(request),
        headers=headers,
        body=body or None,
    )


def build_http_response(
    response: ExchangeResponse,
    extra_headers: Optional[dict[str, str]] = None,
) -> Response:
    """Build the wire response for a final ExchangeResponse.

    ``extra_headers`` (e.g. the exchange id) are appended after the
    exchange's own headers.
    """
    content = response.body.encode("utf-8") if response.body is not None else b""
    http_response = Response(content=content, status_code=response.status)
    for name, value in response.headers.items():
        if name.lower() in HOP_BY_HOP_HEADERS:
            continue
        http_response.raw_headers.append(
            (name.lower().encode("latin-1"), value.encode("latin-1"))
        )
    for name, value in (extra_headers or {}).items():
        http_response.raw_headers.append(
            (name.lower().encode("latin-1"), value.encode("latin-1"))
        )
    return http_response

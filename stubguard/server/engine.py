"""Catch-all stub handler for StubGuard.

Every request that is not an admin route lands in ``stub_handler``:

  1. Exchange id (ULID) generated and bound into the log context
  2. Request frozen into an ExchangeRequest (body read once)
  3. Stub table lookup: no match → 404 plain text, no contract validation
  4. ExchangeTransformer: auth gate, request validation, response validation
  5. Stub's fixed delay applied with ``asyncio.sleep`` (never blocks the loop),
     except on the 401 short-circuit
  6. Final response written with an ``X-StubGuard-Exchange-ID`` header

The handler only reads ``app.state``; all per-exchange state lives in locals,
so any number of exchanges run concurrently.
"""

from __future__ import annotations

import asyncio

from fastapi import APIRouter, Request, Response

from stubguard.constants import (
    CONTENT_TYPE_HEADER,
    DIAGNOSTIC_CONTENT_TYPE,
    EXCHANGE_ID_HEADER,
    NO_STUB_MATCHED_STATUS,
)
from stubguard.errors import ExchangeFailure
from stubguard.models.exchange import ExchangeResponse, HeaderMultiMap
from stubguard.server.headers import build_exchange_request, build_http_response
from stubguard.stubs.table import StubTable
from stubguard.transformer import ExchangeTransformer
from stubguard.utils.logger import clear_exchange_id, get_logger, set_exchange_id
from stubguard.utils.ulid import generate_ulid

logger = get_logger(__name__)

# ─── Router ───────────────────────────────────────────────────────────────────

router = APIRouter(tags=["stubs"])

STUB_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS", "HEAD"]


def no_stub_matched_response(method: str, path: str) -> ExchangeResponse:
    return ExchangeResponse(
        status=NO_STUB_MATCHED_STATUS,
        headers=HeaderMultiMap([(CONTENT_TYPE_HEADER, DIAGNOSTIC_CONTENT_TYPE)]),
        body=f"No stub matched {method} {path}",
    )


# ─── Handler ──────────────────────────────────────────────────────────────────


@router.api_route("/{path:path}", methods=STUB_METHODS)
async def stub_handler(request: Request, path: str) -> Response:
    """Serve the matching stub, contract-checked by the exchange transformer."""
    exchange_id: str = generate_ulid()
    set_exchange_id(exchange_id)
    try:
        stub_table: StubTable = request.app.state.stub_table
        transformer: ExchangeTransformer = request.app.state.transformer

        exchange = await build_exchange_request(request)

        stub = stub_table.match(exchange)
        if stub is None:
            logger.warning("stub_not_matched", method=exchange.method, path=exchange.path)
            return build_http_response(
                no_stub_matched_response(exchange.method, exchange.path),
                extra_headers={EXCHANGE_ID_HEADER: exchange_id},
            )

        logger.debug("stub_matched", stub=stub.name, method=exchange.method, path=exchange.path)
        result = transformer.evaluate(exchange, stub.response.to_exchange_response())

        # The 401 is built fresh and does not inherit the stub's delay.
        delayed = result.failure is not ExchangeFailure.AUTHENTICATION_MISSING
        if delayed and stub.response.fixed_delay_ms > 0:
            await asyncio.sleep(stub.response.fixed_delay_ms / 1000.0)

        return build_http_response(result.response, extra_headers={EXCHANGE_ID_HEADER: exchange_id})
    finally:
        clear_exchange_id()

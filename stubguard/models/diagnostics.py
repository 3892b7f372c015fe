"""Diagnostic response builders for rewritten exchanges.

Provides one factory per terminal failure state of the exchange transformer:

  build_unauthorized_response():
      HTTP 401: missing or malformed bearer credential.
      MUST include ``WWW-Authenticate: Bearer``.

  build_validation_failed_response():
      HTTP 400: request or response violates the contract. Body is the
      rendered ValidationOutcome (banner + one line per ERROR/WARN message).

  build_validation_error_response():
      HTTP 400: the validator itself failed. Body carries the exception text.

Every diagnostic is ``text/plain; charset=UTF-8``. The candidate stub response
is never merged into a diagnostic: its headers and body are discarded.
"""

from __future__ import annotations

from stubguard.constants import (
    CONTENT_TYPE_HEADER,
    DIAGNOSTIC_CONTENT_TYPE,
    REQUEST_VALIDATION_ERROR_BODY,
    REQUEST_VALIDATION_FAILED_BANNER,
    RESPONSE_VALIDATION_ERROR_BODY,
    RESPONSE_VALIDATION_FAILED_BANNER,
    UNAUTHORIZED_BODY,
    UNAUTHORIZED_STATUS,
    VALIDATION_FAILED_STATUS,
    WWW_AUTHENTICATE_HEADER,
)
from stubguard.models.exchange import ExchangeResponse, HeaderMultiMap
from stubguard.models.report import ValidationOutcome

REQUEST_SIDE = "request"
RESPONSE_SIDE = "response"

_BANNERS = {
    REQUEST_SIDE: REQUEST_VALIDATION_FAILED_BANNER,
    RESPONSE_SIDE: RESPONSE_VALIDATION_FAILED_BANNER,
}

_ERROR_BODIES = {
    REQUEST_SIDE: REQUEST_VALIDATION_ERROR_BODY,
    RESPONSE_SIDE: RESPONSE_VALIDATION_ERROR_BODY,
}


def build_unauthorized_response(service_name: str) -> ExchangeResponse:
    """Build the HTTP 401 response for a missing/invalid bearer token.

    The body is identical for every failure cause (absent header, wrong
    scheme, blank token) so callers cannot probe which check failed.
    """
    return ExchangeResponse(
        status=UNAUTHORIZED_STATUS,
        headers=HeaderMultiMap(
            [
                (CONTENT_TYPE_HEADER, DIAGNOSTIC_CONTENT_TYPE),
                (WWW_AUTHENTICATE_HEADER, "Bearer"),
            ]
        ),
        body=UNAUTHORIZED_BODY.format(service=service_name),
    )


def render_validation_failure(
    service_name: str, side: str, outcome: ValidationOutcome
) -> str:
    """Render *outcome* under the request/response banner for *service_name*."""
    return outcome.render(_BANNERS[side].format(service=service_name))


def build_validation_failed_response(diagnostic: str) -> ExchangeResponse:
    """Build the HTTP 400 response carrying a rendered validation diagnostic.

    Args:
        diagnostic: Output of ``render_validation_failure()``.
    """
    return _plain_text(VALIDATION_FAILED_STATUS, diagnostic)


def build_validation_error_response(
    service_name: str, side: str, exc: BaseException
) -> ExchangeResponse:
    """Build the HTTP 400 response for a validator that raised.

    Args:
        service_name: Configured service name used as body prefix.
        side:         ``"request"`` or ``"response"``.
        exc:          The exception raised while validating.
    """
    body = _ERROR_BODIES[side].format(service=service_name, error=str(exc))
    return _plain_text(VALIDATION_FAILED_STATUS, body)


def _plain_text(status: int, body: str) -> ExchangeResponse:
    return ExchangeResponse(
        status=status,
        headers=HeaderMultiMap([(CONTENT_TYPE_HEADER, DIAGNOSTIC_CONTENT_TYPE)]),
        body=body,
    )

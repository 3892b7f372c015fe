"""Exchange transformer: the contract-checking interceptor of StubGuard.

Every exchange (inbound request + the candidate response the stub table
produced for it) passes through ``ExchangeTransformer.evaluate()`` once:

  1. Received       → auth gate. Unauthorized → 401 (terminal).
  2. AuthOK         → validate request. Blocking errors → 400 diagnostic;
                      validator raised → 400 "request validation error".
  3. RequestValid   → validate candidate response. Blocking errors → 400
                      diagnostic (candidate discarded); validator raised →
                      400 "response validation error".
  4. ResponseValid  → candidate returned unmodified (same object).

INVARIANT: evaluate() NEVER raises for a validator failure. Contract checking
must not destabilise the test double itself; every path ends in a
well-formed response.

The transformer holds no per-exchange state. Its collaborators (validator,
auth checker) are read-only after construction, so one instance serves any
number of concurrent exchanges without locking.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from stubguard.auth.gate import AuthChecker, BearerAuthChecker, Unauthorized
from stubguard.constants import DEFAULT_SERVICE_NAME
from stubguard.contract.validator import ContractValidator
from stubguard.errors import ExchangeFailure
from stubguard.models.diagnostics import (
    REQUEST_SIDE,
    RESPONSE_SIDE,
    build_unauthorized_response,
    build_validation_error_response,
    build_validation_failed_response,
    render_validation_failure,
)
from stubguard.models.exchange import ExchangeRequest, ExchangeResponse
from stubguard.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ExchangeResult:
    """Final response of an exchange plus why it was rewritten (if it was)."""

    response: ExchangeResponse
    failure: Optional[ExchangeFailure] = None
    diagnostic: Optional[str] = None

    @property
    def passed(self) -> bool:
        return self.failure is None


class ExchangeTransformer:
    """Auth gate + request/response contract validation for one exchange at a time.

    Args:
        validator:    ContractValidator used for both halves of the exchange.
        auth_checker: Credential check run first (default: BearerAuthChecker).
        service_name: Prefix of every diagnostic body (e.g. "Ewyrys API").
    """

    def __init__(
        self,
        validator: ContractValidator,
        auth_checker: Optional[AuthChecker] = None,
        service_name: str = DEFAULT_SERVICE_NAME,
    ) -> None:
        self._validator = validator
        self._auth_checker = auth_checker or BearerAuthChecker()
        self._service_name = service_name

    @property
    def service_name(self) -> str:
        return self._service_name

    def transform(
        self, request: ExchangeRequest, candidate: ExchangeResponse
    ) -> ExchangeResponse:
        """Return the response the caller should receive for this exchange."""
        return self.evaluate(request, candidate).response

    def evaluate(
        self, request: ExchangeRequest, candidate: ExchangeResponse
    ) -> ExchangeResult:
        # ── 1. Auth gate: always first, short-circuits on failure ───────────
        auth = self._auth_checker.check_auth(request.headers)
        if isinstance(auth, Unauthorized):
            logger.warning(
                "exchange_unauthorized",
                method=request.method,
                path=request.path,
                reason=auth.reason,
            )
            return ExchangeResult(
                response=build_unauthorized_response(self._service_name),
                failure=ExchangeFailure.AUTHENTICATION_MISSING,
            )

        # ── 2. Request validation ────────────────────────────────────────────
        try:
            request_outcome = self._validator.validate_request(request)
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "request_validation_error",
                method=request.method,
                path=request.path,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return ExchangeResult(
                response=build_validation_error_response(self._service_name, REQUEST_SIDE, exc),
                failure=ExchangeFailure.VALIDATOR_INTERNAL_FAILURE,
            )

        if request_outcome.has_blocking_errors:
            diagnostic = render_validation_failure(
                self._service_name, REQUEST_SIDE, request_outcome
            )
            logger.error(
                "request_validation_failed",
                method=request.method,
                path=request.path,
                rules=request_outcome.keys(),
                diagnostic=diagnostic,
            )
            return ExchangeResult(
                response=build_validation_failed_response(diagnostic),
                failure=ExchangeFailure.REQUEST_CONTRACT_VIOLATION,
                diagnostic=diagnostic,
            )

        # ── 3. Response validation of the stub's candidate ───────────────────
        try:
            response_outcome = self._validator.validate_response(
                request.url, request.method, candidate
            )
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "response_validation_error",
                method=request.method,
                path=request.path,
                status_code=candidate.status,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return ExchangeResult(
                response=build_validation_error_response(self._service_name, RESPONSE_SIDE, exc),
                failure=ExchangeFailure.VALIDATOR_INTERNAL_FAILURE,
            )

        if response_outcome.has_blocking_errors:
            diagnostic = render_validation_failure(
                self._service_name, RESPONSE_SIDE, response_outcome
            )
            logger.error(
                "response_validation_failed",
                method=request.method,
                path=request.path,
                status_code=candidate.status,
                rules=response_outcome.keys(),
                diagnostic=diagnostic,
            )
            return ExchangeResult(
                response=build_validation_failed_response(diagnostic),
                failure=ExchangeFailure.RESPONSE_CONTRACT_VIOLATION,
                diagnostic=diagnostic,
            )

        # ── 4. Pass-through ──────────────────────────────────────────────────
        logger.info(
            "exchange_passed",
            method=request.method,
            path=request.path,
            status_code=candidate.status,
            findings=len(request_outcome.messages) + len(response_outcome.messages),
        )
        return ExchangeResult(response=candidate)

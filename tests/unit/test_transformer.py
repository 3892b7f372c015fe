"""Unit tests for stubguard/transformer.py: the exchange state machine.

Uses small in-test validator fakes to drive every terminal state; the real
OpenAPI validator is exercised at the end against the sample contract.
"""

from __future__ import annotations

import json
from typing import Optional

import pytest

from stubguard.auth.gate import Authorized, Unauthorized
from stubguard.errors import ExchangeFailure
from stubguard.models.exchange import ExchangeRequest, ExchangeResponse, HeaderMultiMap
from stubguard.models.report import Level, MessageContext, ValidationMessage, ValidationOutcome
from stubguard.transformer import ExchangeTransformer
from tests.conftest import CREATE_PATH, SERVICE_NAME, VALID_TOKEN

# ─── Fakes ────────────────────────────────────────────────────────────────────


class _RecordingValidator:
    def __init__(
        self,
        request_outcome: ValidationOutcome = ValidationOutcome(),
        response_outcome: ValidationOutcome = ValidationOutcome(),
        request_exc: Optional[Exception] = None,
        response_exc: Optional[Exception] = None,
    ) -> None:
        self.request_outcome = request_outcome
        self.response_outcome = response_outcome
        self.request_exc = request_exc
        self.response_exc = response_exc
        self.calls: list[str] = []

    def validate_request(self, request: ExchangeRequest) -> ValidationOutcome:
        self.calls.append("request")
        if self.request_exc:
            raise self.request_exc
        return self.request_outcome

    def validate_response(self, url: str, method: str, response: ExchangeResponse) -> ValidationOutcome:
        self.calls.append("response")
        if self.response_exc:
            raise self.response_exc
        return self.response_outcome


class _AlwaysAuthorized:
    def check_auth(self, headers: HeaderMultiMap):
        return Authorized(token="t")


def _outcome(level: Level, text: str = "bad") -> ValidationOutcome:
    return ValidationOutcome.of(
        [ValidationMessage(key="validation.request.body.schema.type", level=level, message=text,
                           context=MessageContext(method="POST", path=CREATE_PATH))]
    )


def _request(auth: Optional[str] = VALID_TOKEN, body: Optional[bytes] = b"{}") -> ExchangeRequest:
    pairs = [("Content-Type", "application/json")]
    if auth is not None:
        pairs.append(("Authorization", auth))
    return ExchangeRequest(method="POST", url=CREATE_PATH, headers=HeaderMultiMap(pairs), body=body)


CANDIDATE = ExchangeResponse(
    status=201, headers=HeaderMultiMap([("Content-Type", "application/json"), ("X-Stub", "1")])
)


# ─── State machine ────────────────────────────────────────────────────────────


class TestAuthGate:
    @pytest.mark.parametrize("auth", [None, "Basic abc", "Bearer   "])
    def test_unauthorized_short_circuits(self, auth: Optional[str]) -> None:
        validator = _RecordingValidator()
        result = ExchangeTransformer(validator, service_name=SERVICE_NAME).evaluate(_request(auth), CANDIDATE)

        assert result.failure is ExchangeFailure.AUTHENTICATION_MISSING
        assert result.response.status == 401
        assert result.response.body == "Ewyrys API Missing or invalid Authorization: Bearer <token>"
        assert result.response.headers.get("WWW-Authenticate") == "Bearer"
        assert validator.calls == []

    def test_custom_auth_checker(self) -> None:
        validator = _RecordingValidator()
        transformer = ExchangeTransformer(validator, auth_checker=_AlwaysAuthorized())
        assert transformer.evaluate(_request(auth=None), CANDIDATE).passed

    def test_default_service_name(self) -> None:
        result = ExchangeTransformer(_RecordingValidator()).evaluate(_request(None), CANDIDATE)
        assert result.response.body.startswith("Mock API ")


class TestRequestValidation:
    def test_blocking_request_errors_return_400(self) -> None:
        validator = _RecordingValidator(request_outcome=_outcome(Level.ERROR, "wrong type"))
        result = ExchangeTransformer(validator, service_name=SERVICE_NAME).evaluate(_request(), CANDIDATE)

        assert result.failure is ExchangeFailure.REQUEST_CONTRACT_VIOLATION
        assert result.response.status == 400
        assert result.response.headers.get("Content-Type") == "text/plain; charset=UTF-8"
        assert result.response.body == (
            "Ewyrys API OpenAPI request validation failed:\n"
            f"- [ERROR] wrong type (POST {CREATE_PATH})"
        )
        assert result.diagnostic == result.response.body
        assert validator.calls == ["request"]

    def test_request_validator_exception_returns_400(self) -> None:
        validator = _RecordingValidator(request_exc=RuntimeError("schema exploded"))
        result = ExchangeTransformer(validator, service_name=SERVICE_NAME).evaluate(_request(), CANDIDATE)

        assert result.failure is ExchangeFailure.VALIDATOR_INTERNAL_FAILURE
        assert result.response.status == 400
        assert result.response.body == "Ewyrys API OpenAPI request validation error: schema exploded"
        assert validator.calls == ["request"]

    def test_warnings_do_not_block(self) -> None:
        validator = _RecordingValidator(request_outcome=_outcome(Level.WARN))
        result = ExchangeTransformer(validator).evaluate(_request(), CANDIDATE)
        assert result.passed
        assert result.response is CANDIDATE


class TestResponseValidation:
    def test_blocking_response_errors_discard_candidate(self) -> None:
        validator = _RecordingValidator(response_outcome=_outcome(Level.ERROR, "missing field"))
        result = ExchangeTransformer(validator, service_name=SERVICE_NAME).evaluate(_request(), CANDIDATE)

        assert result.failure is ExchangeFailure.RESPONSE_CONTRACT_VIOLATION
        assert result.response.status == 400
        assert result.response.body.startswith("Ewyrys API OpenAPI response validation failed:\n")
        assert "X-Stub" not in result.response.headers
        assert validator.calls == ["request", "response"]

    def test_response_validator_exception_returns_400(self) -> None:
        validator = _RecordingValidator(response_exc=ValueError("cannot parse"))
        result = ExchangeTransformer(validator, service_name=SERVICE_NAME).evaluate(_request(), CANDIDATE)

        assert result.failure is ExchangeFailure.VALIDATOR_INTERNAL_FAILURE
        assert result.response.body == "Ewyrys API OpenAPI response validation error: cannot parse"


class TestPassThrough:
    def test_candidate_returned_unchanged(self) -> None:
        result = ExchangeTransformer(_RecordingValidator()).evaluate(_request(), CANDIDATE)
        assert result.passed
        assert result.failure is None
        assert result.response is CANDIDATE

    def test_transform_returns_final_response(self) -> None:
        transformer = ExchangeTransformer(_RecordingValidator())
        assert transformer.transform(_request(), CANDIDATE) is CANDIDATE

    def test_repeated_evaluation_is_identical(self) -> None:
        validator = _RecordingValidator(request_outcome=_outcome(Level.ERROR))
        transformer = ExchangeTransformer(validator, service_name=SERVICE_NAME)
        first = transformer.evaluate(_request(), CANDIDATE)
        second = transformer.evaluate(_request(), CANDIDATE)
        assert first == second


class TestWithContract:
    """The transformer wired to the real validator and the sample contract."""

    def test_scenario_create_ok(self, transformer: ExchangeTransformer) -> None:
        body = json.dumps({"businessKey": "businesskey-ok", "applicant": "A"}).encode()
        candidate = ExchangeResponse(status=201, headers=HeaderMultiMap([("Content-Type", "application/json")]))
        assert transformer.transform(_request(body=body), candidate) is candidate

    def test_scenario_malformed_json(self, transformer: ExchangeTransformer) -> None:
        result = transformer.evaluate(_request(body=b'{"businessKey": "businesskey-ok"'), CANDIDATE)
        assert result.failure is ExchangeFailure.REQUEST_CONTRACT_VIOLATION
        assert "- [ERROR] Unable to parse JSON - " in result.response.body

    def test_undeclared_status_passes(self, transformer: ExchangeTransformer) -> None:
        body = json.dumps({"businessKey": "businesskey-unauthorized", "applicant": "A"}).encode()
        candidate = ExchangeResponse(
            status=401,
            headers=HeaderMultiMap([("Content-Type", "application/json")]),
            body='{"error": "UNAUTHORIZED"}',
        )
        assert transformer.transform(_request(body=body), candidate) is candidate

    def test_body_on_status_without_declared_content_passes(self, transformer: ExchangeTransformer) -> None:
        body = json.dumps({"businessKey": "businesskey-ok", "applicant": "A"}).encode()
        candidate = ExchangeResponse(
            status=201,
            headers=HeaderMultiMap([("Content-Type", "application/json")]),
            body='{"id": "1"}',
        )
        result = transformer.evaluate(_request(body=body), candidate)
        assert result.passed
        assert result.response is candidate

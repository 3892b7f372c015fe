"""Error types for StubGuard.

Load-time errors (contract, stub table) are fatal at startup. Exchange-time
failures never raise: they are classified with ``ExchangeFailure`` and turned
into diagnostic responses by the exchange transformer.
"""

from __future__ import annotations

from enum import Enum


class ContractLoadError(Exception):
    """Raised when the contract document cannot be read, parsed or recognised."""


class StubDefinitionError(Exception):
    """Raised when the stub table file is unreadable or structurally invalid."""


class ExchangeFailure(str, Enum):
    """Why an exchange was rewritten into a diagnostic response."""

    AUTHENTICATION_MISSING = "AUTHENTICATION_MISSING"
    REQUEST_CONTRACT_VIOLATION = "REQUEST_CONTRACT_VIOLATION"
    RESPONSE_CONTRACT_VIOLATION = "RESPONSE_CONTRACT_VIOLATION"
    VALIDATOR_INTERNAL_FAILURE = "VALIDATOR_INTERNAL_FAILURE"

"""Bearer credential gate for StubGuard.

Provides the ``AuthChecker`` protocol and its production implementation,
``BearerAuthChecker``. The check is shallow: it verifies that an
``Authorization: Bearer <token>`` header is present and that the token is not
blank. Token content (signature, expiry, audience) is never inspected.

CRITICAL INVARIANT: the exchange transformer runs the auth gate BEFORE any
contract validation. An Unauthorized result short-circuits the exchange.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Union, runtime_checkable

from stubguard.constants import AUTHORIZATION_HEADER, BEARER_PREFIX
from stubguard.models.exchange import HeaderMultiMap


@dataclass(frozen=True)
class Authorized:
    token: str


@dataclass(frozen=True)
class Unauthorized:
    """Failed credential check.

    ``reason`` is for logs only ("missing" | "scheme" | "empty"); the client
    always receives the same 401 body.
    """

    reason: str


AuthResult = Union[Authorized, Unauthorized]


@runtime_checkable
class AuthChecker(Protocol):
    """Pluggable credential check run first on every exchange."""

    def check_auth(self, headers: HeaderMultiMap) -> AuthResult:
        """Return Authorized or Unauthorized. Must not raise."""
        ...


class BearerAuthChecker:
    """Requires ``Authorization: Bearer <non-blank token>``.

    The scheme is matched case-insensitively ("bearer x", "BEARER x" pass).
    Only the first Authorization value is considered.
    """

    def check_auth(self, headers: HeaderMultiMap) -> AuthResult:
        auth = headers.get(AUTHORIZATION_HEADER)
        if auth is None:
            return Unauthorized(reason="missing")
        prefix_len = len(BEARER_PREFIX)
        if not auth.lower().startswith(BEARER_PREFIX.lower()):
            return Unauthorized(reason="scheme")
        token = auth[prefix_len:].strip()
        if not token:
            return Unauthorized(reason="empty")
        return Authorized(token=token)


# BearerAuthChecker must satisfy the AuthChecker protocol.
assert isinstance(BearerAuthChecker(), AuthChecker), (
    "BearerAuthChecker does not satisfy AuthChecker protocol: implementation error"
)

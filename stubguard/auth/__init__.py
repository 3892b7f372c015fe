"""StubGuard authentication package.

Public API:
  - AuthChecker       : protocol for the credential check
  - BearerAuthChecker : production implementation (presence + shape only)
  - Authorized / Unauthorized: check results
"""

from __future__ import annotations

from stubguard.auth.gate import (
    AuthChecker,
    AuthResult,
    Authorized,
    BearerAuthChecker,
    Unauthorized,
)

__all__ = [
    "AuthChecker",
    "AuthResult",
    "Authorized",
    "BearerAuthChecker",
    "Unauthorized",
]

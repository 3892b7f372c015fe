"""StubGuard stub package.

Public API:
  - StubTable    : ordered stub definitions, last matching stub wins
  - Stub, StubResponse, ValuePattern
  - FixtureLoader: file-backed bodies with CONFIGURATION_ERROR fallback
"""

from __future__ import annotations

from stubguard.stubs.fixtures import FixtureLoader, fallback_body
from stubguard.stubs.table import Stub, StubResponse, StubTable, ValuePattern

__all__ = [
    "FixtureLoader",
    "Stub",
    "StubResponse",
    "StubTable",
    "ValuePattern",
    "fallback_body",
]

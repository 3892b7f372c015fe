"""StubGuard contract package.

Public API:
  - ContractDocument        : immutable parsed OpenAPI 3.0/3.1 document
  - LevelResolver           : rule key → Level table with forced rules
  - ContractValidator       : protocol for request/response validation
  - OpenApiContractValidator: production implementation (jsonschema)
"""

from __future__ import annotations

from stubguard.contract.document import ContractDocument, Operation, PathMatch
from stubguard.contract.levels import FORCED_LEVELS, LevelResolver
from stubguard.contract.validator import ContractValidator, OpenApiContractValidator

__all__ = [
    "FORCED_LEVELS",
    "ContractDocument",
    "ContractValidator",
    "LevelResolver",
    "OpenApiContractValidator",
    "Operation",
    "PathMatch",
]

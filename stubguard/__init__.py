"""StubGuard: contract-validating HTTP test double.

Serves canned stub responses and checks every exchange against an OpenAPI
contract, rewriting non-conforming exchanges into plain-text diagnostics.
"""

__version__ = "1.0.0"

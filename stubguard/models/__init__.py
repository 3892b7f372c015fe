"""StubGuard models package.

Defines the shared data contracts used across the auth gate, the contract
validator and the exchange transformer:

  - exchange.py   : HeaderMultiMap, ExchangeRequest, ExchangeResponse
  - report.py     : Level, MessageContext, ValidationMessage, ValidationOutcome
  - diagnostics.py: builders for the 401 / 400 diagnostic responses
"""

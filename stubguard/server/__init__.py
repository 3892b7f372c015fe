"""HTTP layer of StubGuard: catch-all stub route and Starlette conversions."""

"""Shared constants for StubGuard.

Header names, media types and the fixed diagnostic texts used across modules
are defined here. Import from here rather than repeating literals.
"""

# ─── Media types ─────────────────────────────────────────────────────────────

# Every diagnostic response StubGuard writes is plain text.
DIAGNOSTIC_CONTENT_TYPE: str = "text/plain; charset=UTF-8"

# Request bodies without a declared Content-Type are validated as JSON.
DEFAULT_REQUEST_CONTENT_TYPE: str = "application/json"

# Prefix of diagnostic bodies when contract.service_name is not configured.
DEFAULT_SERVICE_NAME: str = "Mock API"

# ─── Header names ────────────────────────────────────────────────────────────

AUTHORIZATION_HEADER: str = "Authorization"
CONTENT_TYPE_HEADER: str = "Content-Type"
WWW_AUTHENTICATE_HEADER: str = "WWW-Authenticate"
EXCHANGE_ID_HEADER: str = "X-StubGuard-Exchange-ID"

# Scheme prefix of a bearer credential, including the separating space.
BEARER_PREFIX: str = "Bearer "

# ─── Diagnostic bodies ───────────────────────────────────────────────────────
# `{service}` is the configured contract.service_name (e.g. "Ewyrys API").

UNAUTHORIZED_BODY: str = "{service} Missing or invalid Authorization: Bearer <token>"
REQUEST_VALIDATION_FAILED_BANNER: str = "{service} OpenAPI request validation failed:"
RESPONSE_VALIDATION_FAILED_BANNER: str = "{service} OpenAPI response validation failed:"
REQUEST_VALIDATION_ERROR_BODY: str = "{service} OpenAPI request validation error: {error}"
RESPONSE_VALIDATION_ERROR_BODY: str = "{service} OpenAPI response validation error: {error}"

# ─── Status codes ────────────────────────────────────────────────────────────

UNAUTHORIZED_STATUS: int = 401
VALIDATION_FAILED_STATUS: int = 400
NO_STUB_MATCHED_STATUS: int = 404

# ─── Fixtures ────────────────────────────────────────────────────────────────

# Fallback fixture body when a stub's body_file cannot be read.
FIXTURE_FALLBACK_ERROR: str = "CONFIGURATION_ERROR"
FIXTURE_FALLBACK_MESSAGE: str = "Failed to load mock response"

"""Exchange identifiers for StubGuard.

Every inbound exchange gets a 26-character ULID (Crockford Base32) that is
bound into the structured log context and returned to the caller in the
``X-StubGuard-Exchange-ID`` response header.

Uses the `python-ulid` library; ULIDs are not generated by hand.
"""

from __future__ import annotations

from ulid import ULID


def generate_ulid() -> str:
    """Return a new ULID as a 26-character uppercase string."""
    return str(ULID())

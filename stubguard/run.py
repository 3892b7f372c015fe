"""Programmatic uvicorn entry point for StubGuard.

Reads host and port from the loaded config (127.0.0.1:8000 by default) and
starts uvicorn serving ``stubguard.main:app``.

Usage:
    python -m stubguard.run    # reads .stubguard/config.yaml
    stubguard                  # via pyproject.toml [project.scripts]
"""

from __future__ import annotations

import uvicorn

from stubguard.config import load_config

# Stubs delay responses with asyncio.sleep; keep enough connections open for
# a test suite that fires many delayed calls at once.
UVICORN_LIMIT_CONCURRENCY: int = 200

UVICORN_BACKLOG: int = 100

UVICORN_TIMEOUT_KEEP_ALIVE: int = 5


def main() -> None:
    """Start the StubGuard server.

    Raises:
        SystemExit: Propagated from load_config() on config parse errors.
    """
    config = load_config()

    uvicorn.run(
        "stubguard.main:app",
        host=config.server.host,
        port=config.server.port,
        limit_concurrency=UVICORN_LIMIT_CONCURRENCY,
        backlog=UVICORN_BACKLOG,
        timeout_keep_alive=UVICORN_TIMEOUT_KEEP_ALIVE,
    )


if __name__ == "__main__":
    main()

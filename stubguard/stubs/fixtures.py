"""File-backed stub bodies.

``FixtureLoader.load()`` reads a response body from below the configured
fixtures root. A missing or unreadable file never fails the stub: the loader
logs the problem and returns a ``CONFIGURATION_ERROR`` JSON body instead, so
the exchange still completes (and is still contract-validated) with a body
that explains what went wrong.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

from stubguard.constants import FIXTURE_FALLBACK_ERROR, FIXTURE_FALLBACK_MESSAGE
from stubguard.utils.logger import get_logger

logger = get_logger(__name__)


def fallback_body(resource: str, now: Optional[datetime] = None) -> str:
    """JSON body returned in place of a fixture that could not be loaded."""
    moment = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    return json.dumps(
        {
            "error": FIXTURE_FALLBACK_ERROR,
            "message": FIXTURE_FALLBACK_MESSAGE,
            "details": f"Response file '{resource}' could not be loaded",
            "timestamp": moment.isoformat().replace("+00:00", "Z"),
        },
        indent=2,
    )


class FixtureLoader:
    """Reads UTF-8 fixture files relative to *root* (absolute paths are used as-is)."""

    def __init__(self, root: Union[str, Path] = ".") -> None:
        self.root = Path(root).expanduser()

    def path_for(self, resource: str) -> Path:
        candidate = Path(resource).expanduser()
        return candidate if candidate.is_absolute() else self.root / candidate

    def load(self, resource: str) -> str:
        path = self.path_for(resource)
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.error(
                "fixture_load_failed",
                resource=resource,
                path=str(path),
                error=str(exc),
            )
            return fallback_body(resource)

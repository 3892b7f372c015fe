"""Severity overrides for contract validation rules.

Every validation message carries a dotted rule key such as
``validation.request.body.schema.required``. ``LevelResolver`` maps a key to
its enforcement level:

  1. forced rules (cannot be overridden by configuration)
  2. configured overrides from ``validation.levels`` in config.yaml
  3. the default level (ERROR)

Within each tier the most specific (longest) matching pattern wins. A pattern
is either an exact key or a prefix ending in ``.*``; ``*`` alone matches all.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping, Optional

from stubguard.models.report import Level

# Forced rules. Security violations always block the exchange, and a response
# status the contract does not declare is never an error on its own, so stubs
# can serve 401/403 negative paths the contract author did not enumerate.
FORCED_LEVELS: Mapping[str, Level] = MappingProxyType(
    {
        "validation.request.security.*": Level.ERROR,
        "validation.response.security.*": Level.ERROR,
        "validation.response.status.unknown": Level.IGNORE,
    }
)


def pattern_matches(pattern: str, key: str) -> bool:
    if pattern == "*" or pattern == key:
        return True
    return pattern.endswith(".*") and key.startswith(pattern[:-1])


def _by_specificity(levels: Mapping[str, Level]) -> tuple[tuple[str, Level], ...]:
    return tuple(sorted(levels.items(), key=lambda item: len(item[0]), reverse=True))


class LevelResolver:
    """Immutable rule-key → Level table.

    Usage::

        resolver = LevelResolver({"validation.request.body.schema.*": Level.WARN})
        resolver.resolve("validation.request.body.schema.required")  # Level.WARN
        resolver.resolve("validation.request.security.missing")      # Level.ERROR (forced)
    """

    def __init__(
        self,
        overrides: Optional[Mapping[str, Level]] = None,
        default: Level = Level.ERROR,
    ) -> None:
        self._forced = _by_specificity(FORCED_LEVELS)
        self._overrides = _by_specificity(dict(overrides or {}))
        self._default = default

    @property
    def overrides(self) -> Mapping[str, Level]:
        """Effective table: configured overrides with forced rules applied on top."""
        merged = dict(self._overrides)
        merged.update(FORCED_LEVELS)
        return MappingProxyType(merged)

    def resolve(self, key: str) -> Level:
        for tier in (self._forced, self._overrides):
            for pattern, level in tier:
                if pattern_matches(pattern, key):
                    return level
        return self._default

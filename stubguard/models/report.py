"""Validation outcome contracts shared by the contract validator and the transformer.

  - Level            : enforcement level of a rule (ERROR | WARN | INFO | IGNORE)
  - MessageContext   : where in the exchange a message applies
  - ValidationMessage: one finding (rule key, level, text, optional context)
  - ValidationOutcome: ordered findings of one validate_* call

A ValidationOutcome never contains IGNORE messages; the validator drops them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional


class Level(str, Enum):
    """Enforcement level of a validation rule."""

    ERROR = "ERROR"
    WARN = "WARN"
    INFO = "INFO"
    IGNORE = "IGNORE"

    @classmethod
    def parse(cls, value: str) -> "Level":
        """Parse a level name case-insensitively; ``WARNING`` is accepted for WARN.

        Raises:
            ValueError: On an unknown level name.
        """
        normalized = str(value).strip().upper()
        if normalized == "WARNING":
            normalized = "WARN"
        try:
            return cls(normalized)
        except ValueError:
            raise ValueError(
                f"Unknown validation level: '{value}'. "
                f"Supported values: {[level.value for level in cls]}."
            ) from None


# Levels that appear in a rendered diagnostic.
RENDERED_LEVELS: frozenset[Level] = frozenset({Level.ERROR, Level.WARN})


@dataclass(frozen=True)
class MessageContext:
    """Location of a finding inside the exchange.

    Rendered as e.g. ``POST /v1.0/application, REQUEST body /businessKey``.
    """

    method: Optional[str] = None
    path: Optional[str] = None
    location: Optional[str] = None  # "REQUEST" | "RESPONSE"
    part: Optional[str] = None      # "body" | "header" | "query" | "path" | ...
    pointer: Optional[str] = None   # JSON pointer or parameter name
    status: Optional[int] = None

    def is_empty(self) -> bool:
        return not any(
            (self.method, self.path, self.location, self.part, self.pointer, self.status)
        )

    def __str__(self) -> str:
        parts: list[str] = []
        operation = " ".join(p for p in (self.method, self.path) if p)
        if operation:
            parts.append(operation)
        if self.status is not None:
            parts.append(f"status {self.status}")
        where = " ".join(p for p in (self.location, self.part, self.pointer) if p)
        if where:
            parts.append(where)
        return ", ".join(parts)


@dataclass(frozen=True)
class ValidationMessage:
    key: str
    level: Level
    message: str
    context: Optional[MessageContext] = None

    def render(self) -> str:
        """One diagnostic line: ``- [LEVEL] message (context)``."""
        line = f"- [{self.level.value}] {self.message}"
        if self.context is not None and not self.context.is_empty():
            line += f" ({self.context})"
        return line


@dataclass(frozen=True)
class ValidationOutcome:
    """Ordered findings of a single request or response validation."""

    messages: tuple[ValidationMessage, ...] = field(default_factory=tuple)

    @classmethod
    def of(cls, messages: Iterable[ValidationMessage]) -> "ValidationOutcome":
        return cls(tuple(m for m in messages if m.level is not Level.IGNORE))

    @property
    def has_blocking_errors(self) -> bool:
        return any(m.level is Level.ERROR for m in self.messages)

    def keys(self) -> list[str]:
        return [m.key for m in self.messages]

    def render(self, banner: str) -> str:
        """Banner line followed by one line per ERROR/WARN message.

        The same text is written to the diagnostic response body and to the
        error log line, so the two never drift apart.
        """
        lines = [banner]
        lines.extend(m.render() for m in self.messages if m.level in RENDERED_LEVELS)
        return "\n".join(lines)

"""Exchange value objects: header multimap, request and response.

These types are framework-independent. The server builds them from Starlette
requests and turns the final ``ExchangeResponse`` back into a Starlette
response; everything in between (auth gate, contract validator, transformer)
only ever sees these objects.

All three types are immutable once built, so an exchange can be validated
any number of times with identical outcomes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Iterator, Mapping, Optional, Union
from urllib.parse import parse_qs, urlsplit

from stubguard.constants import CONTENT_TYPE_HEADER


class HeaderMultiMap:
    """Ordered multimap of HTTP headers with case-insensitive names.

    Values keep their arrival order per name, and ``items()`` yields every
    (name, value) pair in arrival order with the name spelled as received.

    Usage::

        headers = HeaderMultiMap([("Accept", "a/b"), ("accept", "c/d")])
        headers.get("ACCEPT")        # "a/b"
        headers.get_all("accept")    # ["a/b", "c/d"]
    """

    __slots__ = ("_entries",)

    def __init__(self, pairs: Iterable[tuple[str, str]] = ()) -> None:
        self._entries: tuple[tuple[str, str], ...] = tuple(
            (str(name), str(value)) for name, value in pairs
        )

    @classmethod
    def from_mapping(
        cls, mapping: Mapping[str, Union[str, Iterable[str]]]
    ) -> "HeaderMultiMap":
        """Build from ``{name: value}`` or ``{name: [value, ...]}``."""
        pairs: list[tuple[str, str]] = []
        for name, value in mapping.items():
            if isinstance(value, (str, bytes, int, float)):
                pairs.append((name, str(value)))
            else:
                pairs.extend((name, str(v)) for v in value)
        return cls(pairs)

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """First value for *name*, or *default* when absent."""
        wanted = name.lower()
        for key, value in self._entries:
            if key.lower() == wanted:
                return value
        return default

    def get_all(self, name: str) -> list[str]:
        wanted = name.lower()
        return [value for key, value in self._entries if key.lower() == wanted]

    def names(self) -> list[str]:
        """Distinct header names in first-seen order and spelling."""
        seen: dict[str, str] = {}
        for key, _ in self._entries:
            seen.setdefault(key.lower(), key)
        return list(seen.values())

    def items(self) -> Iterator[tuple[str, str]]:
        return iter(self._entries)

    def __contains__(self, name: object) -> bool:
        if not isinstance(name, str):
            return False
        return self.get(name) is not None

    def __iter__(self) -> Iterator[str]:
        return iter(self.names())

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, HeaderMultiMap):
            return NotImplemented
        return self._entries == other._entries

    def __hash__(self) -> int:
        return hash(self._entries)

    def __repr__(self) -> str:
        return f"HeaderMultiMap({list(self._entries)!r})"


@dataclass(frozen=True)
class ExchangeRequest:
    """Inbound request as seen by the validator.

    ``url`` is the request target (path plus optional query string), exactly
    as the stub server received it.
    """

    method: str
    url: str
    headers: HeaderMultiMap = field(default_factory=HeaderMultiMap)
    body: Optional[bytes] = None
    content_type: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "method", self.method.upper())
        if self.content_type is None:
            object.__setattr__(self, "content_type", self.headers.get(CONTENT_TYPE_HEADER))

    @property
    def path(self) -> str:
        return urlsplit(self.url).path or "/"

    @property
    def query(self) -> dict[str, list[str]]:
        return parse_qs(urlsplit(self.url).query, keep_blank_values=True)

    @property
    def body_text(self) -> Optional[str]:
        if not self.body:
            return None
        return self.body.decode("utf-8", errors="replace")


@dataclass(frozen=True)
class ExchangeResponse:
    """Candidate or final response of an exchange."""

    status: int
    headers: HeaderMultiMap = field(default_factory=HeaderMultiMap)
    body: Optional[str] = None

    @property
    def content_type(self) -> Optional[str]:
        return self.headers.get(CONTENT_TYPE_HEADER)

"""Stub table for StubGuard.

Loads stub definitions from YAML and matches inbound exchanges against them.

Stub file layout (top-level list, or a mapping with a ``stubs:`` key)::

    stubs:
      - name: create-application-ok
        request:
          method: POST                                  # or ANY
          url_path_pattern: /ewyrys-epuc/v1.0/application
          body_patterns:
            - matches: ".*(businesskey-ok).*"
          headers:
            X-Delay-create-application: {matches: "true"}
        response:
          status: 201
          headers: {Content-Type: application/json}
          body_file: createApplication/conflict.json    # or body / json_body
          fixed_delay_ms: 10000

Matching rules:
  - ``url_path_pattern``, ``matches`` predicates: full match
  - ``contains``: substring, ``equal_to``: exact string
  - body patterns see the body with ``.`` matching newlines
  - every predicate of a stub must hold
  - the most recently defined matching stub wins

IMPORT RULES:
  - Patterns are user-supplied: compile them with ``re2`` (google-re2, linear
    time), never with ``re``.

Invalid definitions raise ``StubDefinitionError`` at load time.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

import re2
import yaml

from stubguard.errors import StubDefinitionError
from stubguard.models.exchange import ExchangeRequest, ExchangeResponse, HeaderMultiMap
from stubguard.stubs.fixtures import FixtureLoader
from stubguard.utils.logger import get_logger

logger = get_logger(__name__)

ANY_METHOD = "ANY"

_PREDICATE_KINDS = ("matches", "contains", "equal_to")


# ─── Predicates ──────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ValuePattern:
    """One string predicate: ``matches`` (re2 full match), ``contains`` or ``equal_to``."""

    kind: str
    value: str
    regex: Any = field(default=None, compare=False, repr=False)

    @classmethod
    def parse(cls, raw: Any, where: str, dotall: bool = False) -> "ValuePattern":
        if not isinstance(raw, dict) or len(raw) != 1:
            raise StubDefinitionError(
                f"{where}: expected a single-key mapping with one of {list(_PREDICATE_KINDS)}"
            )
        kind, value = next(iter(raw.items()))
        if kind not in _PREDICATE_KINDS or not isinstance(value, (str, int, float, bool)):
            raise StubDefinitionError(
                f"{where}: unsupported predicate {raw!r}; use one of {list(_PREDICATE_KINDS)}"
            )
        value = str(value).lower() if isinstance(value, bool) else str(value)
        regex = None
        if kind == "matches":
            try:
                regex = re2.compile(("(?s)" if dotall else "") + value)
            except re2.error as exc:
                raise StubDefinitionError(
                    f"{where}: '{value}' is not a valid google-re2 pattern: {exc}"
                ) from exc
        return cls(kind=kind, value=value, regex=regex)

    def test(self, actual: Optional[str]) -> bool:
        if actual is None:
            return False
        if self.kind == "matches":
            return self.regex.fullmatch(actual) is not None
        if self.kind == "contains":
            return self.value in actual
        return actual == self.value


# ─── Stub ────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class StubResponse:
    status: int
    headers: HeaderMultiMap = field(default_factory=HeaderMultiMap)
    body: Optional[str] = None
    fixed_delay_ms: int = 0

    def to_exchange_response(self) -> ExchangeResponse:
        return ExchangeResponse(status=self.status, headers=self.headers, body=self.body)


@dataclass(frozen=True)
class Stub:
    method: str
    url_path: ValuePattern
    response: StubResponse
    body_patterns: tuple[ValuePattern, ...] = ()
    header_patterns: tuple[tuple[str, ValuePattern], ...] = ()
    name: Optional[str] = None

    def matches(self, request: ExchangeRequest) -> bool:
        if self.method != ANY_METHOD and self.method != request.method:
            return False
        if not self.url_path.test(request.path):
            return False
        for header, pattern in self.header_patterns:
            if not any(pattern.test(v) for v in request.headers.get_all(header)):
                return False
        if self.body_patterns:
            body = request.body_text or ""
            if not all(p.test(body) for p in self.body_patterns):
                return False
        return True


# ─── StubTable ───────────────────────────────────────────────────────────────


class StubTable:
    """Read-only ordered collection of stubs.

    Usage::

        table = StubTable.load("stubs.yaml", FixtureLoader("fixtures"))
        stub = table.match(exchange_request)   # None when nothing matches
    """

    def __init__(self, stubs: Iterable[Stub] = ()) -> None:
        self._stubs: tuple[Stub, ...] = tuple(stubs)

    def __len__(self) -> int:
        return len(self._stubs)

    def __iter__(self):
        return iter(self._stubs)

    def match(self, request: ExchangeRequest) -> Optional[Stub]:
        for stub in reversed(self._stubs):
            if stub.matches(request):
                return stub
        return None

    @classmethod
    def load(cls, path: str, fixtures: FixtureLoader) -> "StubTable":
        """Load a stub file. A missing file yields an empty table.

        Raises:
            StubDefinitionError: On YAML parse/read errors or invalid stubs.
        """
        expanded = os.path.expanduser(path)
        if not os.path.isfile(expanded):
            logger.warning("Stub file not found: no stubs configured", path=path)
            return cls()
        try:
            with open(expanded, encoding="utf-8") as fh:
                raw = yaml.safe_load(fh)
        except yaml.YAMLError as exc:
            raise StubDefinitionError(f"Failed to parse stub file {path}: {exc}") from exc
        except OSError as exc:
            raise StubDefinitionError(f"Could not read stub file {path}: {exc}") from exc

        table = cls.from_raw(raw, fixtures)
        logger.info("Stub table loaded", path=path, count=len(table))
        return table

    @classmethod
    def from_raw(cls, raw: Any, fixtures: FixtureLoader) -> "StubTable":
        if raw is None:
            return cls()
        if isinstance(raw, dict):
            raw = raw.get("stubs") or []
        if not isinstance(raw, list):
            raise StubDefinitionError(
                f"Stub definitions must be a list, got {type(raw).__name__}"
            )
        return cls(_parse_stub(item, i, fixtures) for i, item in enumerate(raw))


# ─── Parsing helpers ─────────────────────────────────────────────────────────


def _parse_stub(item: Any, index: int, fixtures: FixtureLoader) -> Stub:
    where = f"stubs[{index}]"
    if not isinstance(item, dict):
        raise StubDefinitionError(f"{where}: stub must be a mapping")
    name = item.get("name")
    if name is not None:
        where = f"{where} ({name})"

    request = item.get("request")
    response = item.get("response")
    if not isinstance(request, dict) or not isinstance(response, dict):
        raise StubDefinitionError(f"{where}: 'request' and 'response' mappings are required")

    url_pattern = request.get("url_path_pattern")
    if not isinstance(url_pattern, str) or not url_pattern:
        raise StubDefinitionError(f"{where}: request.url_path_pattern is required")

    body_patterns = tuple(
        ValuePattern.parse(p, f"{where}.request.body_patterns[{i}]", dotall=True)
        for i, p in enumerate(request.get("body_patterns") or [])
    )
    header_patterns = tuple(
        (str(header), ValuePattern.parse(p, f"{where}.request.headers.{header}"))
        for header, p in (request.get("headers") or {}).items()
    )

    return Stub(
        method=str(request.get("method", ANY_METHOD)).upper(),
        url_path=ValuePattern.parse({"matches": url_pattern}, f"{where}.request.url_path_pattern"),
        response=_parse_response(response, where, fixtures),
        body_patterns=body_patterns,
        header_patterns=header_patterns,
        name=str(name) if name is not None else None,
    )


def _parse_response(raw: dict, where: str, fixtures: FixtureLoader) -> StubResponse:
    status = raw.get("status", 200)
    if not isinstance(status, int) or not 100 <= status <= 599:
        raise StubDefinitionError(f"{where}: response.status must be an HTTP status code")

    delay = raw.get("fixed_delay_ms", 0)
    if not isinstance(delay, int) or delay < 0:
        raise StubDefinitionError(f"{where}: response.fixed_delay_ms must be a non-negative integer")

    bodies = [k for k in ("body", "json_body", "body_file") if k in raw]
    if len(bodies) > 1:
        raise StubDefinitionError(f"{where}: use only one of body, json_body, body_file")

    body: Optional[str] = None
    if "body" in raw:
        body = str(raw["body"])
    elif "json_body" in raw:
        body = json.dumps(raw["json_body"])
    elif "body_file" in raw:
        body = fixtures.load(str(raw["body_file"]))

    headers = raw.get("headers") or {}
    if not isinstance(headers, dict):
        raise StubDefinitionError(f"{where}: response.headers must be a mapping")

    return StubResponse(
        status=status,
        headers=HeaderMultiMap.from_mapping(headers),
        body=body,
        fixed_delay_ms=delay,
    )

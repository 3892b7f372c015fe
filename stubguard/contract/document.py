"""OpenAPI contract document for StubGuard.

``ContractDocument`` is the parsed, read-only view of the API contract:

  - loaded once at startup from a file path or a ``package:resource`` reference
  - YAML or JSON (PyYAML parses both)
  - OpenAPI 3.0.x and 3.1.x only
  - path templates (``/application/{businessKey}``) matched per segment;
    literal segments beat templated ones
  - local ``$ref`` objects resolved on demand

No method mutates the parsed document after construction, which is what makes
a single instance safe to share between concurrently validated exchanges.

Load failures raise ``ContractLoadError``; the application lifespan treats
them as fatal.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from importlib import resources
from typing import Any, Mapping, Optional
from urllib.parse import unquote, urlsplit

import yaml

from stubguard.errors import ContractLoadError
from stubguard.utils.logger import get_logger

logger = get_logger(__name__)

HTTP_METHODS: tuple[str, ...] = (
    "get", "put", "post", "delete", "options", "head", "patch", "trace",
)

SUPPORTED_OPENAPI_VERSIONS: frozenset[str] = frozenset({"3.0", "3.1"})

_PARAM_RE = re.compile(r"\{([^{}/]+)\}")


# ─── Path templates ──────────────────────────────────────────────────────────


class PathTemplate:
    """One ``paths`` key compiled for segment-wise matching."""

    def __init__(self, template: str) -> None:
        self.template = template
        self._segments: list[tuple[Optional[re.Pattern[str]], str]] = []
        self.literal_count = 0
        for segment in _split(template):
            names = _PARAM_RE.findall(segment)
            if not names:
                self._segments.append((None, segment))
                self.literal_count += 1
                continue
            pattern = ""
            last = 0
            for m in _PARAM_RE.finditer(segment):
                pattern += re.escape(segment[last:m.start()])
                pattern += f"(?P<{_group_name(m.group(1))}>[^/]+)"
                last = m.end()
            pattern += re.escape(segment[last:])
            self._segments.append((re.compile(pattern), segment))

    def match(self, segments: list[str]) -> Optional[dict[str, str]]:
        if len(segments) != len(self._segments):
            return None
        params: dict[str, str] = {}
        for actual, (regex, literal) in zip(segments, self._segments):
            if regex is None:
                if actual != literal:
                    return None
                continue
            m = regex.fullmatch(actual)
            if m is None:
                return None
            for raw_name in _PARAM_RE.findall(literal):
                params[raw_name] = m.group(_group_name(raw_name))
        return params


def _split(path: str) -> list[str]:
    stripped = path.strip("/")
    return stripped.split("/") if stripped else []


def _group_name(name: str) -> str:
    return "p_" + re.sub(r"\W", "_", name)


# ─── Operations ──────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Operation:
    """A single (path template, method) entry of the contract."""

    method: str                      # upper-case HTTP method
    path_template: str
    definition: Mapping[str, Any]    # the raw operation object
    path_item: Mapping[str, Any]     # the enclosing path item

    @property
    def operation_id(self) -> str:
        return str(self.definition.get("operationId") or f"{self.method} {self.path_template}")


@dataclass(frozen=True)
class PathMatch:
    template: str
    params: Mapping[str, str]


# ─── ContractDocument ────────────────────────────────────────────────────────


class ContractDocument:
    """Immutable, process-lifetime view of an OpenAPI 3.x contract.

    Usage::

        contract = ContractDocument.load("contract/api.yaml")
        match = contract.match_path("/v1.0/application/businesskey-ok")
        op = contract.operation(match.template, "PUT")
    """

    def __init__(self, raw: Mapping[str, Any], source: str = "<memory>") -> None:
        if not isinstance(raw, Mapping):
            raise ContractLoadError(f"Contract {source} is not a mapping at the top level")

        version = str(raw.get("openapi", "")).strip()
        major_minor = ".".join(version.split(".")[:2])
        if major_minor not in SUPPORTED_OPENAPI_VERSIONS:
            raise ContractLoadError(
                f"Contract {source} declares unsupported openapi version '{version}'. "
                f"Supported: {sorted(SUPPORTED_OPENAPI_VERSIONS)}"
            )

        paths = raw.get("paths")
        if not isinstance(paths, Mapping):
            raise ContractLoadError(f"Contract {source} has no 'paths' mapping")

        self._raw: Mapping[str, Any] = raw
        self.source = source
        self.openapi_version = version
        self._templates: tuple[PathTemplate, ...] = tuple(
            sorted(
                (PathTemplate(str(t)) for t in paths),
                key=lambda t: (-t.literal_count, t.template),
            )
        )
        self._base_paths: tuple[str, ...] = tuple(
            sorted(
                {
                    urlsplit(str(s.get("url", ""))).path.rstrip("/")
                    for s in raw.get("servers") or []
                    if isinstance(s, Mapping)
                }
                - {""},
                key=len,
                reverse=True,
            )
        )

    # ── Loading ──────────────────────────────────────────────────────────────

    @classmethod
    def load(cls, location: str) -> "ContractDocument":
        """Load a contract from a file path or a ``package:resource/path`` reference.

        Raises:
            ContractLoadError: Unreadable resource, invalid YAML/JSON, or not an
                               OpenAPI 3.0/3.1 document.
        """
        text = _read_location(location)
        contract = cls.from_text(text, source=location)
        logger.info(
            "Contract loaded",
            source=location,
            openapi=contract.openapi_version,
            title=contract.title,
            paths=len(contract._templates),
        )
        return contract

    @classmethod
    def from_text(cls, text: str, source: str = "<memory>") -> "ContractDocument":
        try:
            raw = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ContractLoadError(f"Failed to parse contract {source}: {exc}") from exc
        return cls(raw, source=source)

    # ── Document metadata ────────────────────────────────────────────────────

    @property
    def raw(self) -> Mapping[str, Any]:
        return self._raw

    @property
    def title(self) -> str:
        return str((self._raw.get("info") or {}).get("title", ""))

    @property
    def version(self) -> str:
        return str((self._raw.get("info") or {}).get("version", ""))

    @property
    def is_openapi_31(self) -> bool:
        return self.openapi_version.startswith("3.1")

    @property
    def global_security(self) -> Optional[list]:
        return self._raw.get("security")

    # ── Lookup ───────────────────────────────────────────────────────────────

    def match_path(self, path: str) -> Optional[PathMatch]:
        """Find the path template matching a request path.

        Server URL path prefixes (``servers[].url``) are tried stripped as well,
        so ``/api/v1/items`` matches ``/items`` when a server is ``/api/v1``.
        """
        for candidate in self._candidate_paths(path):
            segments = _split(candidate)
            for template in self._templates:
                params = template.match(segments)
                if params is not None:
                    return PathMatch(template=template.template, params=params)
        return None

    def operation(self, template: str, method: str) -> Optional[Operation]:
        path_item = self.resolve(self._raw["paths"].get(template)) or {}
        definition = path_item.get(method.lower())
        if not isinstance(definition, Mapping):
            return None
        return Operation(
            method=method.upper(),
            path_template=template,
            definition=definition,
            path_item=path_item,
        )

    def operations(self) -> list[Operation]:
        """Every operation in the contract, in document order."""
        found: list[Operation] = []
        for template in self._raw["paths"]:
            for method in HTTP_METHODS:
                op = self.operation(str(template), method)
                if op is not None:
                    found.append(op)
        return found

    def allowed_methods(self, template: str) -> list[str]:
        path_item = self.resolve(self._raw["paths"].get(template)) or {}
        return [m.upper() for m in HTTP_METHODS if m in path_item]

    def security_scheme(self, name: str) -> Optional[Mapping[str, Any]]:
        schemes = (self._raw.get("components") or {}).get("securitySchemes") or {}
        scheme = schemes.get(name)
        return self.resolve(scheme) if scheme is not None else None

    def resolve(self, obj: Any) -> Any:
        """Follow local ``$ref`` pointers (``#/components/...``) until a concrete object."""
        seen: set[str] = set()
        while isinstance(obj, Mapping) and "$ref" in obj:
            ref = str(obj["$ref"])
            if ref in seen:
                raise ContractLoadError(f"Circular $ref in contract: {ref}")
            seen.add(ref)
            obj = self._pointer(ref)
        return obj

    def _pointer(self, ref: str) -> Any:
        if not ref.startswith("#/"):
            raise ContractLoadError(f"Only local $ref pointers are supported: {ref}")
        current: Any = self._raw
        for token in ref[2:].split("/"):
            token = unquote(token).replace("~1", "/").replace("~0", "~")
            if isinstance(current, Mapping) and token in current:
                current = current[token]
            elif isinstance(current, list) and token.isdigit():
                current = current[int(token)]
            else:
                raise ContractLoadError(f"Unresolvable $ref in contract: {ref}")
        return current

    def _candidate_paths(self, path: str) -> list[str]:
        candidates = [path]
        for base in self._base_paths:
            if path == base:
                candidates.append("/")
            elif path.startswith(base + "/"):
                candidates.append(path[len(base):])
        return candidates


# ─── Resource reading ────────────────────────────────────────────────────────


def _read_location(location: str) -> str:
    """Read contract text from a filesystem path or ``package:resource``."""
    expanded = os.path.expanduser(location)
    if os.path.isfile(expanded):
        try:
            with open(expanded, encoding="utf-8") as fh:
                return fh.read()
        except OSError as exc:
            raise ContractLoadError(f"Could not read contract {location}: {exc}") from exc

    package, sep, resource = location.partition(":")
    if sep and package and resource and "/" not in package and "\\" not in package:
        try:
            return resources.files(package).joinpath(resource).read_text(encoding="utf-8")
        except (ModuleNotFoundError, FileNotFoundError, OSError) as exc:
            raise ContractLoadError(
                f"Could not read contract resource {location}: {exc}"
            ) from exc

    raise ContractLoadError(f"Contract not found: {location}")

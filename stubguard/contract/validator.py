"""OpenAPI request/response validation for StubGuard.

Provides the ``ContractValidator`` protocol and its production implementation,
``OpenApiContractValidator``, built once from a ``ContractDocument`` and a
``LevelResolver``.

Construction compiles every operation of the contract up front (parameters,
request body, responses, security alternatives) into immutable specs holding
ready-made jsonschema validators:

  - OpenAPI 3.0 → ``Draft4Validator`` with ``nullable: true`` translated
  - OpenAPI 3.1 → ``Draft202012Validator``

Schema ``$ref`` pointers resolve against the whole contract document, so
``#/components/schemas/...`` works from any schema.

After construction nothing is written: validate_request() and
validate_response() only read, and build a fresh outcome per call.

Rule keys emitted (level via LevelResolver, default ERROR):
  validation.{request,response}.path.missing
  validation.{request,response}.operation.notAllowed
  validation.request.security.missing / .invalid
  validation.request.parameter.missing / .schema.<keyword>
  validation.{request,response}.contentType.notAllowed
  validation.{request,response}.body.missing
  validation.request.body.unexpected
  validation.{request,response}.body.schema.invalidJson / .<keyword>
  validation.response.status.unknown
  validation.response.header.missing
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Mapping, Optional, Protocol, runtime_checkable
from urllib.parse import urlsplit

from jsonschema import Draft4Validator, Draft202012Validator
from jsonschema.protocols import Validator

from stubguard.constants import AUTHORIZATION_HEADER, DEFAULT_REQUEST_CONTENT_TYPE
from stubguard.contract.document import ContractDocument, Operation
from stubguard.contract.levels import LevelResolver
from stubguard.models.exchange import ExchangeRequest, ExchangeResponse
from stubguard.models.report import MessageContext, ValidationMessage, ValidationOutcome

# Header parameters OpenAPI says to ignore when declared.
_IGNORED_HEADER_PARAMETERS = frozenset({"accept", "content-type", "authorization"})

_INTEGER_RE = re.compile(r"^-?\d+$")


# ─── Protocol ────────────────────────────────────────────────────────────────


@runtime_checkable
class ContractValidator(Protocol):
    """Pluggable contract check for both halves of an exchange."""

    def validate_request(self, request: ExchangeRequest) -> ValidationOutcome:
        ...

    def validate_response(
        self, url: str, method: str, response: ExchangeResponse
    ) -> ValidationOutcome:
        ...


# ─── Compiled specs ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class _MediaSpec:
    media_type: str
    validator: Optional[Validator]


@dataclass(frozen=True)
class _BodySpec:
    required: bool
    media: tuple[_MediaSpec, ...]


@dataclass(frozen=True)
class _ParameterSpec:
    name: str
    location: str
    required: bool
    schema: Optional[Mapping[str, Any]]
    validator: Optional[Validator]


@dataclass(frozen=True)
class _ResponseSpec:
    body: Optional[_BodySpec]
    required_headers: tuple[str, ...]


@dataclass(frozen=True)
class _OperationSpec:
    operation: Operation
    parameters: tuple[_ParameterSpec, ...]
    request_body: Optional[_BodySpec]
    responses: Mapping[str, _ResponseSpec]
    security: tuple[Mapping[str, Any], ...]


# ─── Validator ───────────────────────────────────────────────────────────────


class OpenApiContractValidator:
    """Validates exchanges against an OpenAPI 3.0/3.1 contract.

    Usage::

        validator = OpenApiContractValidator(ContractDocument.load(path), LevelResolver())
        outcome = validator.validate_request(request)
        if outcome.has_blocking_errors:
            ...
    """

    def __init__(
        self,
        contract: ContractDocument,
        levels: Optional[LevelResolver] = None,
    ) -> None:
        self._contract = contract
        self._levels = levels or LevelResolver()
        self._translate_nullable = not contract.is_openapi_31
        self._validator_cls = (
            Draft202012Validator if contract.is_openapi_31 else Draft4Validator
        )
        self._schema_root: Mapping[str, Any] = _normalize(
            contract.raw, self._translate_nullable
        )
        self._operations: Mapping[tuple[str, str], _OperationSpec] = MappingProxyType(
            {
                (op.path_template, op.method): self._compile_operation(op)
                for op in contract.operations()
            }
        )

    @property
    def contract(self) -> ContractDocument:
        return self._contract

    @property
    def levels(self) -> LevelResolver:
        return self._levels

    # ── Public API ───────────────────────────────────────────────────────────

    def validate_request(self, request: ExchangeRequest) -> ValidationOutcome:
        messages: list[ValidationMessage] = []
        path = request.path
        base = MessageContext(method=request.method, path=path)

        resolved = self._resolve_operation(request.method, path, "request", base, messages)
        if resolved is None:
            return ValidationOutcome.of(messages)
        spec, path_params = resolved

        self._check_security(spec, request, base, messages)
        self._check_parameters(spec, request, path_params, base, messages)
        self._check_request_body(spec, request, base, messages)
        return ValidationOutcome.of(messages)

    def validate_response(
        self, url: str, method: str, response: ExchangeResponse
    ) -> ValidationOutcome:
        messages: list[ValidationMessage] = []
        method = method.upper()
        path = urlsplit(url).path or "/"
        base = MessageContext(method=method, path=path)

        resolved = self._resolve_operation(method, path, "response", base, messages)
        if resolved is None:
            return ValidationOutcome.of(messages)
        spec, _ = resolved

        ctx = MessageContext(method=method, path=path, location="RESPONSE", status=response.status)
        response_spec = _lookup_status(spec.responses, response.status)
        if response_spec is None:
            self._add(
                messages,
                "validation.response.status.unknown",
                f"Response status {response.status} not defined for operation "
                f"'{spec.operation.operation_id}'.",
                ctx,
            )
            return ValidationOutcome.of(messages)

        for header in response_spec.required_headers:
            if header not in response.headers:
                self._add(
                    messages,
                    "validation.response.header.missing",
                    f"Header '{header}' is required but is missing.",
                    _with(ctx, part="header", pointer=header),
                )

        text = response.body
        blank = text is None or not text.strip()
        body_spec = response_spec.body
        if body_spec is None or not body_spec.media:
            return ValidationOutcome.of(messages)

        if blank:
            self._add(
                messages,
                "validation.response.body.missing",
                f"A response body is required for status {response.status} but none found.",
                _with(ctx, part="body"),
            )
            return ValidationOutcome.of(messages)

        content_type = _effective_content_type(response.content_type)
        self._check_body(body_spec, text, content_type, "response", ctx, messages)
        return ValidationOutcome.of(messages)

    # ── Resolution ───────────────────────────────────────────────────────────

    def _resolve_operation(
        self,
        method: str,
        path: str,
        side: str,
        ctx: MessageContext,
        messages: list[ValidationMessage],
    ) -> Optional[tuple[_OperationSpec, Mapping[str, str]]]:
        match = self._contract.match_path(path)
        if match is None:
            self._add(
                messages,
                f"validation.{side}.path.missing",
                f"No API path found that matches {side} '{path}'.",
                ctx,
            )
            return None
        spec = self._operations.get((match.template, method))
        if spec is None:
            allowed = self._contract.allowed_methods(match.template)
            self._add(
                messages,
                f"validation.{side}.operation.notAllowed",
                f"{method} operation not allowed on path '{match.template}'. "
                f"Allowed: {allowed}.",
                ctx,
            )
            return None
        return spec, match.params

    # ── Request checks ───────────────────────────────────────────────────────

    def _check_security(
        self,
        spec: _OperationSpec,
        request: ExchangeRequest,
        ctx: MessageContext,
        messages: list[ValidationMessage],
    ) -> None:
        if not spec.security or any(not req for req in spec.security):
            return

        undefined: list[str] = []
        for requirement in spec.security:
            for name in requirement:
                if self._contract.security_scheme(name) is None and name not in undefined:
                    undefined.append(name)
        for name in undefined:
            self._add(
                messages,
                "validation.request.security.invalid",
                f"Security scheme '{name}' is not defined in the contract.",
                _with(ctx, location="REQUEST", part="security", pointer=name),
            )

        for requirement in spec.security:
            if all(
                name not in undefined and _credential_present(self._contract.security_scheme(name), request)
                for name in requirement
            ):
                return

        alternatives = " or ".join("+".join(req) for req in spec.security)
        self._add(
            messages,
            "validation.request.security.missing",
            f"No credentials supplied for security requirement: {alternatives}.",
            _with(ctx, location="REQUEST", part="security"),
        )

    def _check_parameters(
        self,
        spec: _OperationSpec,
        request: ExchangeRequest,
        path_params: Mapping[str, str],
        ctx: MessageContext,
        messages: list[ValidationMessage],
    ) -> None:
        for param in spec.parameters:
            values = _parameter_values(param, request, path_params)
            where = _with(ctx, location="REQUEST", part=param.location, pointer=param.name)
            if not values:
                if param.required:
                    self._add(
                        messages,
                        "validation.request.parameter.missing",
                        f"Parameter '{param.name}' is required but is missing.",
                        where,
                    )
                continue
            if param.validator is None:
                continue
            instance = _coerce(values, param.schema or {})
            for error in param.validator.iter_errors(instance):
                self._add(
                    messages,
                    f"validation.request.parameter.schema.{error.validator}",
                    f"Parameter '{param.name}': {error.message}",
                    where,
                )

    def _check_request_body(
        self,
        spec: _OperationSpec,
        request: ExchangeRequest,
        ctx: MessageContext,
        messages: list[ValidationMessage],
    ) -> None:
        text = request.body_text
        blank = text is None or not text.strip()
        body_spec = spec.request_body
        where = _with(ctx, location="REQUEST", part="body")

        if body_spec is None:
            if not blank:
                self._add(
                    messages,
                    "validation.request.body.unexpected",
                    f"No request body is expected for operation "
                    f"'{spec.operation.operation_id}'.",
                    where,
                )
            return

        if blank:
            if body_spec.required:
                self._add(
                    messages,
                    "validation.request.body.missing",
                    "A request body is required but none found.",
                    where,
                )
            return

        content_type = _effective_content_type(request.content_type)
        self._check_body(body_spec, text, content_type, "request", ctx, messages)

    # ── Shared body check ────────────────────────────────────────────────────

    def _check_body(
        self,
        body_spec: _BodySpec,
        text: Optional[str],
        content_type: str,
        side: str,
        ctx: MessageContext,
        messages: list[ValidationMessage],
    ) -> None:
        where = _with(ctx, location=side.upper(), part="body")
        media = _match_media(content_type, body_spec.media)
        if media is None:
            if body_spec.media:
                allowed = [m.media_type for m in body_spec.media]
                self._add(
                    messages,
                    f"validation.{side}.contentType.notAllowed",
                    f"{side.capitalize()} Content-Type header '{content_type}' does not "
                    f"match any allowed types. Must be one of: {allowed}.",
                    _with(where, part="header", pointer="Content-Type"),
                )
            return

        if media.validator is None or not _is_json(content_type):
            return

        try:
            instance = json.loads(text or "")
        except ValueError as exc:
            self._add(
                messages,
                f"validation.{side}.body.schema.invalidJson",
                f"Unable to parse JSON - {exc}",
                where,
            )
            return

        for error in media.validator.iter_errors(instance):
            pointer = "/" + "/".join(str(p) for p in error.absolute_path)
            self._add(
                messages,
                f"validation.{side}.body.schema.{error.validator}",
                error.message,
                _with(where, pointer=pointer),
            )

    # ── Compilation ──────────────────────────────────────────────────────────

    def _compile_operation(self, op: Operation) -> _OperationSpec:
        definition = op.definition
        if "security" in definition:
            security = definition.get("security") or []
        else:
            security = self._contract.global_security or []

        return _OperationSpec(
            operation=op,
            parameters=self._compile_parameters(op),
            request_body=self._compile_body(definition.get("requestBody")),
            responses=MappingProxyType(
                {
                    str(code).upper(): self._compile_response(response)
                    for code, response in (definition.get("responses") or {}).items()
                }
            ),
            security=tuple(dict(req or {}) for req in security),
        )

    def _compile_parameters(self, op: Operation) -> tuple[_ParameterSpec, ...]:
        merged: dict[tuple[str, str], Mapping[str, Any]] = {}
        declared = list(op.path_item.get("parameters") or []) + list(
            op.definition.get("parameters") or []
        )
        for raw in declared:
            param = self._contract.resolve(raw)
            if not isinstance(param, Mapping) or "name" not in param or "in" not in param:
                continue
            merged[(str(param["name"]), str(param["in"]))] = param

        specs: list[_ParameterSpec] = []
        for (name, location), param in merged.items():
            if location == "header" and name.lower() in _IGNORED_HEADER_PARAMETERS:
                continue
            schema = param.get("schema")
            normalized = _normalize(schema, self._translate_nullable) if schema else None
            specs.append(
                _ParameterSpec(
                    name=name,
                    location=location,
                    required=location == "path" or bool(param.get("required", False)),
                    schema=normalized,
                    validator=self._compile_schema(normalized),
                )
            )
        return tuple(specs)

    def _compile_body(self, raw: Any) -> Optional[_BodySpec]:
        body = self._contract.resolve(raw)
        if not isinstance(body, Mapping):
            return None
        media: list[_MediaSpec] = []
        for media_type, media_obj in (body.get("content") or {}).items():
            schema = (media_obj or {}).get("schema")
            normalized = _normalize(schema, self._translate_nullable) if schema is not None else None
            media.append(
                _MediaSpec(
                    media_type=str(media_type).lower(),
                    validator=self._compile_schema(normalized),
                )
            )
        return _BodySpec(required=bool(body.get("required", False)), media=tuple(media))

    def _compile_response(self, raw: Any) -> _ResponseSpec:
        response = self._contract.resolve(raw) or {}
        required_headers: list[str] = []
        for name, header in (response.get("headers") or {}).items():
            header = self._contract.resolve(header) or {}
            if str(name).lower() == "content-type":
                continue
            if header.get("required"):
                required_headers.append(str(name))
        body = self._compile_body(response) if response.get("content") else None
        return _ResponseSpec(body=body, required_headers=tuple(required_headers))

    def _compile_schema(self, schema: Optional[Mapping[str, Any]]) -> Optional[Validator]:
        if schema is None:
            return None
        # Document keys (paths, components, ...) are not schema keywords; keeping
        # them in the root lets every local $ref resolve.
        root = dict(self._schema_root)
        root.update(schema)
        return self._validator_cls(root, format_checker=self._validator_cls.FORMAT_CHECKER)

    def _add(
        self,
        messages: list[ValidationMessage],
        key: str,
        text: str,
        context: Optional[MessageContext],
    ) -> None:
        messages.append(
            ValidationMessage(key=key, level=self._levels.resolve(key), message=text, context=context)
        )


# ─── Helpers ─────────────────────────────────────────────────────────────────


def _with(ctx: MessageContext, **changes: Any) -> MessageContext:
    values = {
        "method": ctx.method,
        "path": ctx.path,
        "location": ctx.location,
        "part": ctx.part,
        "pointer": ctx.pointer,
        "status": ctx.status,
    }
    values.update(changes)
    return MessageContext(**values)


def _normalize(node: Any, translate_nullable: bool) -> Any:
    """Copy a contract subtree into plain JSON-Schema-friendly structures.

    Mapping keys become strings (YAML parses ``201:`` as an int) and, for
    OpenAPI 3.0, ``nullable: true`` becomes a ``null`` type/enum member.
    """
    if isinstance(node, Mapping):
        out = {str(k): _normalize(v, translate_nullable) for k, v in node.items()}
        if translate_nullable and isinstance(out.get("nullable"), bool):
            if out.pop("nullable"):
                kind = out.get("type")
                if isinstance(kind, str):
                    out["type"] = [kind, "null"]
                if isinstance(out.get("enum"), list) and None not in out["enum"]:
                    out["enum"] = [*out["enum"], None]
        return out
    if isinstance(node, list):
        return [_normalize(v, translate_nullable) for v in node]
    return node


def _lookup_status(responses: Mapping[str, _ResponseSpec], status: int) -> Optional[_ResponseSpec]:
    for key in (str(status), f"{str(status)[0]}XX", "DEFAULT"):
        if key in responses:
            return responses[key]
    return None


def _media_base(content_type: str) -> str:
    return content_type.split(";", 1)[0].strip().lower()


def _effective_content_type(declared: Optional[str]) -> str:
    if declared is None or not declared.strip():
        return DEFAULT_REQUEST_CONTENT_TYPE
    return declared


def _is_json(content_type: str) -> bool:
    base = _media_base(content_type)
    return base.endswith("/json") or base.endswith("+json")


def _match_media(content_type: str, media: tuple[_MediaSpec, ...]) -> Optional[_MediaSpec]:
    base = _media_base(content_type)
    major = base.split("/", 1)[0]
    for spec in media:
        if _media_base(spec.media_type) == base:
            return spec
    for spec in media:
        if _media_base(spec.media_type) == f"{major}/*":
            return spec
    for spec in media:
        if _media_base(spec.media_type) == "*/*":
            return spec
    return None


def _credential_present(scheme: Optional[Mapping[str, Any]], request: ExchangeRequest) -> bool:
    if scheme is None:
        return False
    kind = str(scheme.get("type", "")).lower()
    if kind == "http":
        return _authorization_has_scheme(request, str(scheme.get("scheme", "")).lower())
    if kind == "apikey":
        name = str(scheme.get("name", ""))
        where = str(scheme.get("in", "")).lower()
        if where == "header":
            return name in request.headers
        if where == "query":
            return name in request.query
        if where == "cookie":
            return name in _cookie_names(request)
        return False
    if kind in ("oauth2", "openidconnect"):
        return _authorization_has_scheme(request, "bearer")
    if kind == "mutualtls":
        # Client certificates are not visible at this layer.
        return True
    return False


def _authorization_has_scheme(request: ExchangeRequest, scheme: str) -> bool:
    auth = request.headers.get(AUTHORIZATION_HEADER)
    if not auth or not scheme:
        return False
    prefix = scheme + " "
    return auth.lower().startswith(prefix) and bool(auth[len(prefix):].strip())


def _cookie_names(request: ExchangeRequest) -> set[str]:
    names: set[str] = set()
    for header in request.headers.get_all("Cookie"):
        for pair in header.split(";"):
            name, sep, _ = pair.strip().partition("=")
            if sep and name:
                names.add(name)
    return names


def _parameter_values(
    param: _ParameterSpec,
    request: ExchangeRequest,
    path_params: Mapping[str, str],
) -> list[str]:
    if param.location == "path":
        return [path_params[param.name]] if param.name in path_params else []
    if param.location == "query":
        return request.query.get(param.name, [])
    if param.location == "header":
        return request.headers.get_all(param.name)
    if param.location == "cookie":
        values: list[str] = []
        for header in request.headers.get_all("Cookie"):
            for pair in header.split(";"):
                name, sep, value = pair.strip().partition("=")
                if sep and name == param.name:
                    values.append(value)
        return values
    return []


def _schema_type(schema: Mapping[str, Any]) -> Optional[str]:
    kind = schema.get("type")
    if isinstance(kind, list):
        kind = next((k for k in kind if k != "null"), None)
    return kind if isinstance(kind, str) else None


def _coerce(values: list[str], schema: Mapping[str, Any]) -> Any:
    """Turn raw parameter strings into the JSON types their schema expects."""
    if _schema_type(schema) == "array":
        items = schema.get("items") or {}
        raw = values if len(values) > 1 else values[0].split(",")
        return [_coerce_scalar(v, items) for v in raw]
    return _coerce_scalar(values[0], schema)


def _coerce_scalar(value: str, schema: Mapping[str, Any]) -> Any:
    kind = _schema_type(schema)
    if kind == "integer" and _INTEGER_RE.match(value):
        return int(value)
    if kind == "number":
        try:
            return float(value) if not _INTEGER_RE.match(value) else int(value)
        except ValueError:
            return value
    if kind == "boolean" and value.lower() in ("true", "false"):
        return value.lower() == "true"
    return value


# OpenApiContractValidator must satisfy the ContractValidator protocol.
assert issubclass(OpenApiContractValidator, ContractValidator), (
    "OpenApiContractValidator does not satisfy ContractValidator protocol: implementation error"
)

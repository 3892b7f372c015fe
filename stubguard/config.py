"""Config loading for StubGuard.

Reads `.stubguard/config.yaml` (or `~/.stubguard/config.yaml`).
Raises SystemExit on parse errors, a missing `version` field or an unknown
validation level. If no config file is found, returns default values.

Config search order:
  1. `config_path` argument (if provided: for testing or explicit override)
  2. STUBGUARD_CONFIG environment variable (if set)
  3. `.stubguard/config.yaml` (working directory: for development)
  4. `~/.stubguard/config.yaml` (home directory)

Environment variable overrides:
  STUBGUARD_PORT    : overrides server.port
  STUBGUARD_CONTRACT: overrides contract.location
  STUBGUARD_CONFIG  : sets an explicit config file path to try first

Relative contract, stub and fixture paths resolve against the directory of
the config file they were read from.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from typing import Optional

import yaml

from stubguard.constants import DEFAULT_SERVICE_NAME
from stubguard.models.report import Level
from stubguard.utils.logger import get_logger

logger = get_logger(__name__)

# ─── Version constants ────────────────────────────────────────────────────────

SUPPORTED_CONFIG_VERSION = 1

SUPPORTED_VERSIONS: frozenset[int] = frozenset({1})

# Default config search paths (STUBGUARD_CONFIG env var prepended at runtime)
DEFAULT_CONFIG_PATHS = [
    ".stubguard/config.yaml",
    os.path.expanduser("~/.stubguard/config.yaml"),
]

DEFAULT_CONTRACT_LOCATION = "contract/openapi.yaml"


# ─── Dataclasses ─────────────────────────────────────────────────────────────


@dataclass
class ServerConfig:
    """HTTP binding of the stub server."""

    host: str = "127.0.0.1"
    port: int = 8000


@dataclass
class ContractConfig:
    """Where the OpenAPI contract lives and how diagnostics name the service.

    location:     Filesystem path or ``package:resource`` reference.
    service_name: Prefix of every diagnostic body (e.g. "Ewyrys API").
    """

    location: str = DEFAULT_CONTRACT_LOCATION
    service_name: str = DEFAULT_SERVICE_NAME


@dataclass
class ValidationConfig:
    """Per-rule level overrides (rule key or ``prefix.*`` → Level)."""

    levels: dict[str, Level] = field(default_factory=dict)


@dataclass
class StubsConfig:
    path: str = "stubs.yaml"
    fixtures_root: str = "fixtures"


@dataclass
class Config:
    """Root configuration object populated from .stubguard/config.yaml.

    All fields have defaults: StubGuard can start without any config file
    as long as the default contract location exists.
    """

    version: int = SUPPORTED_CONFIG_VERSION
    server: ServerConfig = field(default_factory=ServerConfig)
    contract: ContractConfig = field(default_factory=ContractConfig)
    validation: ValidationConfig = field(default_factory=ValidationConfig)
    stubs: StubsConfig = field(default_factory=StubsConfig)
    path: Optional[str] = None  # Path to the loaded config file

    @classmethod
    def defaults(cls) -> "Config":
        """Return a fully-default Config (no file required)."""
        return cls()

    @classmethod
    def from_dict(cls, raw: dict, path: Optional[str] = None) -> "Config":
        """Construct Config from a parsed YAML dict.

        Merges user-supplied values onto defaults; unknown keys are silently ignored.

        Args:
            raw:  Parsed YAML dict (must already be validated for version field).
            path: Path to the config file; relative paths resolve against its directory.

        Raises:
            SystemExit(1): On an unknown validation level name.
        """
        base_dir = os.path.dirname(os.path.abspath(path)) if path else None

        # ── Server ────────────────────────────────────────────────────────────
        server_raw = raw.get("server") or {}
        server = ServerConfig(
            host=server_raw.get("host", "127.0.0.1"),
            port=server_raw.get("port", 8000),
        )

        # ── Contract ──────────────────────────────────────────────────────────
        contract_raw = raw.get("contract") or {}
        contract = ContractConfig(
            location=_resolve(
                contract_raw.get("location", DEFAULT_CONTRACT_LOCATION), base_dir
            ),
            service_name=str(contract_raw.get("service_name", DEFAULT_SERVICE_NAME)),
        )

        # ── Validation levels ─────────────────────────────────────────────────
        validation_raw = raw.get("validation") or {}
        levels: dict[str, Level] = {}
        for key, value in (validation_raw.get("levels") or {}).items():
            try:
                levels[str(key)] = Level.parse(value)
            except ValueError as exc:
                print(f"CONFIG ERROR: validation.levels['{key}']: {exc}", file=sys.stderr)
                raise SystemExit(1)

        # ── Stubs ─────────────────────────────────────────────────────────────
        stubs_raw = raw.get("stubs") or {}
        stubs = StubsConfig(
            path=_resolve(stubs_raw.get("path", "stubs.yaml"), base_dir),
            fixtures_root=_resolve(stubs_raw.get("fixtures_root", "fixtures"), base_dir),
        )

        return cls(
            version=raw.get("version", SUPPORTED_CONFIG_VERSION),
            server=server,
            contract=contract,
            validation=ValidationConfig(levels=levels),
            stubs=stubs,
            path=path,
        )


def _resolve(location: str, base_dir: Optional[str]) -> str:
    """Resolve a relative filesystem path against the config file's directory.

    ``package:resource`` contract references are returned untouched.
    """
    location = str(location)
    if base_dir is None or _is_resource_ref(location):
        return location
    expanded = os.path.expanduser(location)
    if os.path.isabs(expanded):
        return expanded
    return os.path.join(base_dir, expanded)


def _is_resource_ref(location: str) -> bool:
    package, sep, _ = location.partition(":")
    # "C:\..." drive letters are single characters
    return bool(sep) and len(package) > 1 and "/" not in package and "\\" not in package


# ─── Config loading ───────────────────────────────────────────────────────────


def load_config(config_path: Optional[str] = None) -> Config:
    """Load and validate StubGuard configuration.

    Search order:
      1. ``config_path`` argument
      2. ``STUBGUARD_CONFIG`` environment variable
      3. ``.stubguard/config.yaml``
      4. ``~/.stubguard/config.yaml``

    If no file is found at any of these paths, returns default Config (not an error).
    If a file is found but invalid, writes error to stderr and raises SystemExit(1).
    Env var overrides are applied in both cases.

    Raises:
        SystemExit(1): On YAML parse error, missing or unsupported ``version``,
                       an unknown validation level, or invalid ``STUBGUARD_PORT``.
    """
    search_paths: list[str] = []
    if config_path:
        search_paths.append(config_path)
    env_config = os.environ.get("STUBGUARD_CONFIG")
    if env_config:
        search_paths.append(env_config)
    search_paths.extend(DEFAULT_CONFIG_PATHS)

    found_path: Optional[str] = None
    for candidate in search_paths:
        expanded = os.path.expanduser(candidate)
        if os.path.isfile(expanded):
            found_path = expanded
            break

    # ── No config file found ─────────────────────────────────────────────────
    if found_path is None:
        logger.info("No config file found: using defaults", searched=search_paths)
        config = Config.defaults()
        _apply_env_overrides(config)
        return config

    # ── Parse config file ─────────────────────────────────────────────────────
    logger.info("Loading config", path=found_path)

    try:
        with open(found_path, encoding="utf-8") as fh:
            raw = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        msg = (
            f"CONFIG ERROR: Failed to parse {found_path}: {exc}\n"
            "StubGuard refuses to start with an invalid config. "
            "Check the YAML syntax and try again."
        )
        print(msg, file=sys.stderr)
        raise SystemExit(1)
    except OSError as exc:
        print(f"CONFIG ERROR: Could not read {found_path}: {exc}", file=sys.stderr)
        raise SystemExit(1)

    if not isinstance(raw, dict):
        if raw is None:
            msg = (
                f"CONFIG ERROR: {found_path} is missing the required 'version' field.\n"
                "Add 'version: 1' to the top of your config file."
            )
        else:
            msg = (
                f"CONFIG ERROR: {found_path} is not a valid YAML mapping.\n"
                "The config file must be a YAML dictionary at the top level."
            )
        print(msg, file=sys.stderr)
        raise SystemExit(1)

    # ── Version validation ────────────────────────────────────────────────────
    version = raw.get("version")
    if version is None:
        msg = (
            f"CONFIG ERROR: {found_path} is missing the required 'version' field.\n"
            "Add 'version: 1' to the top of your config file."
        )
        print(msg, file=sys.stderr)
        raise SystemExit(1)

    if version not in SUPPORTED_VERSIONS:
        msg = (
            f"CONFIG ERROR: Unsupported config version: {version}. "
            f"Supported versions: {sorted(SUPPORTED_VERSIONS)}."
        )
        print(msg, file=sys.stderr)
        raise SystemExit(1)

    config = Config.from_dict(raw, path=found_path)
    _apply_env_overrides(config)

    if config.server.host == "0.0.0.0":
        logger.warning(
            "StubGuard is configured to bind on 0.0.0.0 (all interfaces). "
            "Stubs are test doubles; use server.host: '127.0.0.1' unless the "
            "stub must be reachable from other machines."
        )

    logger.info(
        "Config loaded",
        path=found_path,
        version=config.version,
        contract=config.contract.location,
        level_overrides=len(config.validation.levels),
    )
    return config


def _apply_env_overrides(config: Config) -> None:
    """Apply environment variable overrides to a Config object in-place.

    Handles:
      STUBGUARD_PORT    : overrides config.server.port (integer; SystemExit(1) if invalid)
      STUBGUARD_CONTRACT: overrides config.contract.location

    Raises:
        SystemExit(1): If STUBGUARD_PORT is set but not a valid integer.
    """
    env_port = os.environ.get("STUBGUARD_PORT")
    if env_port is not None:
        try:
            config.server.port = int(env_port)
        except ValueError:
            msg = (
                f"CONFIG ERROR: STUBGUARD_PORT environment variable is not a valid "
                f"integer: '{env_port}'"
            )
            print(msg, file=sys.stderr)
            raise SystemExit(1)

    env_contract = os.environ.get("STUBGUARD_CONTRACT")
    if env_contract:
        config.contract.location = env_contract

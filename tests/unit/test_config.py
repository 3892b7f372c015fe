"""Unit tests for stubguard/config.py: config loading, validation, env overrides."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from stubguard.config import Config, load_config
from stubguard.models.report import Level


def _write(tmp_path: Path, text: str) -> str:
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return str(path)


class TestDefaults:
    def test_no_file_returns_defaults(self) -> None:
        config = load_config()
        assert config == Config.defaults()
        assert config.server.host == "127.0.0.1"
        assert config.server.port == 8000
        assert config.contract.service_name == "Mock API"
        assert config.validation.levels == {}
        assert config.path is None

    def test_env_port_applies_without_file(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("STUBGUARD_PORT", "9100")
        assert load_config().server.port == 9100


class TestLoading:
    def test_full_file(self, tmp_path: Path) -> None:
        path = _write(
            tmp_path,
            """
version: 1
server: {host: 127.0.0.1, port: 8123}
contract:
  location: contract/api.yaml
  service_name: Ewyrys API
validation:
  levels:
    validation.request.body.schema.*: warning
    validation.response.header.missing: IGNORE
stubs:
  path: stubs.yaml
  fixtures_root: responses
""",
        )
        config = load_config(path)

        assert config.path == path
        assert config.server.port == 8123
        assert config.contract.service_name == "Ewyrys API"
        assert config.contract.location == os.path.join(str(tmp_path), "contract/api.yaml")
        assert config.stubs.path == os.path.join(str(tmp_path), "stubs.yaml")
        assert config.stubs.fixtures_root == os.path.join(str(tmp_path), "responses")
        assert config.validation.levels == {
            "validation.request.body.schema.*": Level.WARN,
            "validation.response.header.missing": Level.IGNORE,
        }

    def test_absolute_and_resource_locations_kept(self, tmp_path: Path) -> None:
        path = _write(
            tmp_path,
            "version: 1\ncontract: {location: 'mypkg:contracts/api.yaml'}\nstubs: {path: /srv/stubs.yaml}\n",
        )
        config = load_config(path)
        assert config.contract.location == "mypkg:contracts/api.yaml"
        assert config.stubs.path == "/srv/stubs.yaml"

    def test_env_config_path(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("STUBGUARD_CONFIG", _write(tmp_path, "version: 1\nserver: {port: 8200}\n"))
        assert load_config().server.port == 8200

    def test_env_overrides_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = _write(tmp_path, "version: 1\nserver: {port: 8200}\ncontract: {location: a.yaml}\n")
        monkeypatch.setenv("STUBGUARD_PORT", "8300")
        monkeypatch.setenv("STUBGUARD_CONTRACT", "/elsewhere/b.yaml")
        config = load_config(path)
        assert config.server.port == 8300
        assert config.contract.location == "/elsewhere/b.yaml"

    def test_bind_all_interfaces_still_loads(self, tmp_path: Path) -> None:
        config = load_config(_write(tmp_path, "version: 1\nserver: {host: 0.0.0.0}\n"))
        assert config.server.host == "0.0.0.0"


class TestInvalidConfig:
    @pytest.mark.parametrize(
        "text, fragment",
        [
            ("server: {port: 1}\n", "missing the required 'version'"),
            ("", "missing the required 'version'"),
            ("version: 2\n", "Unsupported config version"),
            ("- a\n- b\n", "not a valid YAML mapping"),
            ("version: 1\nserver: [unclosed\n", "Failed to parse"),
            ("version: 1\nvalidation: {levels: {x: FATAL}}\n", "Unknown validation level"),
        ],
    )
    def test_exits_with_message(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str], text: str, fragment: str
    ) -> None:
        with pytest.raises(SystemExit) as exc_info:
            load_config(_write(tmp_path, text))
        assert exc_info.value.code == 1
        assert fragment in capsys.readouterr().err

    def test_invalid_env_port(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("STUBGUARD_PORT", "eighty")
        with pytest.raises(SystemExit) as exc_info:
            load_config()
        assert exc_info.value.code == 1

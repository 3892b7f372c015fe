"""Root test configuration for StubGuard.

Shared fixtures point at the sample Ewyrys contract, stub file and response
fixtures in ``tests/fixtures/``. ``app_config`` is what the application
lifespan sees when tests patch ``stubguard.main.load_config``.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from stubguard.config import Config, ContractConfig, StubsConfig
from stubguard.contract.document import ContractDocument
from stubguard.contract.levels import LevelResolver
from stubguard.contract.validator import OpenApiContractValidator
from stubguard.stubs.fixtures import FixtureLoader
from stubguard.stubs.table import StubTable
from stubguard.transformer import ExchangeTransformer

FIXTURES_DIR = Path(__file__).parent / "fixtures"
CONTRACT_PATH = FIXTURES_DIR / "contract" / "ewyrys-api.yaml"
STUBS_PATH = FIXTURES_DIR / "stubs.yaml"
RESPONSES_DIR = FIXTURES_DIR / "responses"

SERVICE_NAME = "Ewyrys API"
VALID_TOKEN = "Bearer test-token"

CREATE_PATH = "/ewyrys-epuc/v1.0/application"


def update_path(business_key: str) -> str:
    return f"{CREATE_PATH}/{business_key}"


@pytest.fixture(autouse=True)
def isolate_config_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep developer config files and STUBGUARD_* variables out of every test."""
    for name in ("STUBGUARD_CONFIG", "STUBGUARD_PORT", "STUBGUARD_CONTRACT"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(
        "stubguard.config.DEFAULT_CONFIG_PATHS", ["/nonexistent/.stubguard/config.yaml"]
    )


@pytest.fixture(scope="session")
def contract() -> ContractDocument:
    return ContractDocument.load(str(CONTRACT_PATH))


@pytest.fixture
def validator(contract: ContractDocument) -> OpenApiContractValidator:
    return OpenApiContractValidator(contract, LevelResolver())


@pytest.fixture
def transformer(validator: OpenApiContractValidator) -> ExchangeTransformer:
    return ExchangeTransformer(validator, service_name=SERVICE_NAME)


@pytest.fixture
def fixture_loader() -> FixtureLoader:
    return FixtureLoader(RESPONSES_DIR)


@pytest.fixture
def stub_table(fixture_loader: FixtureLoader) -> StubTable:
    return StubTable.load(str(STUBS_PATH), fixture_loader)


@pytest.fixture
def app_config() -> Config:
    return Config(
        contract=ContractConfig(location=str(CONTRACT_PATH), service_name=SERVICE_NAME),
        stubs=StubsConfig(path=str(STUBS_PATH), fixtures_root=str(RESPONSES_DIR)),
    )


@pytest.fixture
def patch_load_config(monkeypatch: pytest.MonkeyPatch, app_config: Config) -> Config:
    """Make the application lifespan load ``app_config`` instead of reading files."""
    monkeypatch.setattr("stubguard.main.load_config", lambda: app_config)
    return app_config

"""StubGuard FastAPI application factory + lifespan lifecycle.

This module implements:
  - build_components(): config → contract, transformer, stub table
  - lifespan          : @asynccontextmanager startup/shutdown sequence
  - create_app()      : testable application factory
  - app = create_app(): module-level instance for uvicorn

Startup sequence:
  1. load_config()                 → app.state.config
  2. ContractDocument.load()       → app.state.contract
  3. LevelResolver + validator     → app.state.transformer
  4. FixtureLoader + StubTable     → app.state.stub_table
  5. app.state.ready = True

A contract or stub file that cannot be loaded stops startup with
SystemExit(1) before ready=True is ever set.
"""

from __future__ import annotations

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import PlainTextResponse

from stubguard import __version__
from stubguard.auth.gate import BearerAuthChecker
from stubguard.config import Config, load_config
from stubguard.contract.document import ContractDocument
from stubguard.contract.levels import LevelResolver
from stubguard.contract.validator import OpenApiContractValidator
from stubguard.errors import ContractLoadError, StubDefinitionError
from stubguard.health import router as health_router
from stubguard.server.engine import router as engine_router
from stubguard.stubs.fixtures import FixtureLoader
from stubguard.stubs.table import StubTable
from stubguard.transformer import ExchangeTransformer
from stubguard.utils.logger import configure_logging, get_logger

# ─── Logging Setup ────────────────────────────────────────────────────────────
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO" if not DEBUG else "DEBUG")
JSON_LOGS = os.getenv("JSON_LOGS", "true").lower() == "true"

configure_logging(log_level=LOG_LEVEL, json_output=JSON_LOGS)
logger = get_logger(__name__)


# ─── Dependencies ─────────────────────────────────────────────────────────────


async def require_ready(request: Request) -> None:
    """FastAPI dependency: raises HTTP 503 if app.state.ready is not True."""
    if not getattr(request.app.state, "ready", False):
        raise HTTPException(status_code=503, detail="StubGuard is starting up")


# ─── Components ───────────────────────────────────────────────────────────────


def build_components(
    config: Config,
) -> tuple[ContractDocument, ExchangeTransformer, StubTable]:
    """Load the contract and stub table and wire the exchange transformer.

    Raises:
        SystemExit(1): Contract or stub file cannot be loaded.
    """
    # The validator resolves every $ref up front, so a dangling reference
    # surfaces here as a load error too.
    try:
        contract = ContractDocument.load(config.contract.location)
        validator = OpenApiContractValidator(
            contract, levels=LevelResolver(config.validation.levels)
        )
    except ContractLoadError as exc:
        logger.error("Contract load failed", location=config.contract.location, error=str(exc))
        raise SystemExit(1)

    transformer = ExchangeTransformer(
        validator,
        auth_checker=BearerAuthChecker(),
        service_name=config.contract.service_name,
    )

    try:
        stub_table = StubTable.load(
            config.stubs.path, FixtureLoader(config.stubs.fixtures_root)
        )
    except StubDefinitionError as exc:
        logger.error("Stub table load failed", path=config.stubs.path, error=str(exc))
        raise SystemExit(1)

    return contract, transformer, stub_table


# ─── Lifespan ─────────────────────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: startup and shutdown sequence."""
    logger.info("StubGuard starting up...")

    config: Config = load_config()
    app.state.config = config

    contract, transformer, stub_table = build_components(config)
    app.state.contract = contract
    app.state.transformer = transformer
    app.state.stub_table = stub_table

    app.state.ready = True
    logger.info(
        "StubGuard ready",
        service_name=config.contract.service_name,
        contract=contract.title,
        stubs=len(stub_table),
    )

    yield

    app.state.ready = False
    logger.info("StubGuard shutdown complete")


# ─── Application Factory ──────────────────────────────────────────────────────


def create_app() -> FastAPI:
    """Create and configure the StubGuard FastAPI application.

    Call this function directly in tests to get an isolated app instance:
        app = create_app()

    Returns:
        Configured FastAPI application with lifespan and routers.
    """
    # The whole path space belongs to stubs: no /docs, /redoc or /openapi.json.
    application = FastAPI(
        title="StubGuard",
        description="Contract-checked HTTP stub server",
        version=__version__,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    application.state.ready = False

    # health_router (/__admin/health) MUST be included BEFORE the catch-all.
    application.include_router(health_router)
    application.include_router(engine_router, dependencies=[Depends(require_ready)])

    @application.exception_handler(HTTPException)
    async def http_exception_handler(
        request: Request, exc: HTTPException
    ) -> PlainTextResponse:
        logger.warning(
            "HTTP exception",
            status_code=exc.status_code,
            detail=exc.detail,
            path=str(request.url.path),
        )
        return PlainTextResponse(str(exc.detail), status_code=exc.status_code)

    @application.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> PlainTextResponse:
        logger.error(
            "Unhandled exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=str(request.url.path),
        )
        return PlainTextResponse("Internal server error", status_code=500)

    return application


# ─── Module-Level App (for uvicorn) ───────────────────────────────────────────

app = create_app()

"""Admin health endpoint for StubGuard.

Implements:
  GET /__admin/health: 503 before ``app.state.ready``, 200 after

The ``__admin`` prefix keeps the endpoint out of the way of stubbed API paths.
The router is registered before the catch-all stub route so it always wins.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request

from stubguard import __version__
from stubguard.config import Config
from stubguard.contract.document import ContractDocument

router = APIRouter(tags=["admin"])


@router.get("/__admin/health")
async def health(request: Request) -> dict[str, Any]:
    """Readiness plus what the stub is serving.

    Response body (200):
        {
          "status": "ok",
          "version": "1.0.0",
          "service_name": "Ewyrys API",
          "contract": {"title": "...", "version": "...", "source": "..."},
          "stubs": 4
        }
    """
    if not getattr(request.app.state, "ready", False):
        raise HTTPException(status_code=503, detail="StubGuard is starting up")

    config: Config = request.app.state.config
    contract: ContractDocument = request.app.state.contract

    return {
        "status": "ok",
        "version": __version__,
        "service_name": config.contract.service_name,
        "contract": {
            "title": contract.title,
            "version": contract.version,
            "source": contract.source,
        },
        "stubs": len(request.app.state.stub_table),
    }

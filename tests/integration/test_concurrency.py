"""Concurrent exchanges against one StubGuard instance.

Delayed stubs sleep with asyncio.sleep, so N delayed exchanges fired together
finish in roughly one delay, not N delays, and none sees another's state.
"""

from __future__ import annotations

import asyncio
import time

import pytest
from httpx import ASGITransport, AsyncClient

from stubguard.config import Config
from stubguard.main import create_app, lifespan
from tests.conftest import CREATE_PATH, VALID_TOKEN, update_path

pytestmark = pytest.mark.asyncio

DELAY_SECONDS = 0.2
PARALLEL = 5


async def test_delayed_stubs_do_not_serialize(patch_load_config: Config) -> None:
    application = create_app()
    headers = {"Authorization": VALID_TOKEN, "X-Delay-create-application": "true"}
    body = {"businessKey": "businesskey-ok", "applicant": "A"}

    async with lifespan(application):
        transport = ASGITransport(app=application)  # type: ignore[arg-type]
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            started = time.monotonic()
            responses = await asyncio.gather(
                *(client.post(CREATE_PATH, json=body, headers=headers) for _ in range(PARALLEL))
            )
            elapsed = time.monotonic() - started

    assert [r.status_code for r in responses] == [201] * PARALLEL
    assert elapsed >= DELAY_SECONDS
    assert elapsed < DELAY_SECONDS * PARALLEL * 0.8
    ids = {r.headers["x-stubguard-exchange-id"] for r in responses}
    assert len(ids) == PARALLEL


async def test_mixed_outcomes_stay_independent(patch_load_config: Config) -> None:
    application = create_app()
    auth = {"Authorization": VALID_TOKEN}

    async with lifespan(application):
        transport = ASGITransport(app=application)  # type: ignore[arg-type]
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            responses = await asyncio.gather(
                client.post(CREATE_PATH, json={"businessKey": "businesskey-ok", "applicant": "A"}, headers=auth),
                client.post(CREATE_PATH, json={"businessKey": "businesskey-ok", "applicant": "A"}),
                client.put(update_path("businesskey-malformed"), json={"status": "ACCEPTED"}, headers=auth),
                client.put(update_path("businesskey-notfound"), json={"status": "ACCEPTED"}, headers=auth),
                client.get("/no/such/stub"),
            )

    assert [r.status_code for r in responses] == [201, 401, 400, 404, 404]
    assert "response validation failed" in responses[2].text
    assert responses[3].json()["error"] == "NOT_FOUND"


async def test_unauthorized_delayed_stub_answers_without_delay(patch_load_config: Config) -> None:
    application = create_app()
    headers = {"X-Delay-create-application": "true"}
    body = {"businessKey": "businesskey-ok", "applicant": "A"}

    async with lifespan(application):
        transport = ASGITransport(app=application)  # type: ignore[arg-type]
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            started = time.monotonic()
            response = await client.post(CREATE_PATH, json=body, headers=headers)
            elapsed = time.monotonic() - started

    assert response.status_code == 401
    assert elapsed < DELAY_SECONDS

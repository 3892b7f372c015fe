"""Unit tests for stubguard/utils: exchange ids and the log processors."""

from __future__ import annotations

import re

from stubguard.utils.logger import (
    add_exchange_id,
    clear_exchange_id,
    exchange_id_var,
    set_exchange_id,
)
from stubguard.utils.ulid import generate_ulid

ULID_PATTERN = re.compile(r"^[0-9A-HJKMNP-TV-Z]{26}$")


class TestGenerateUlid:
    def test_format(self) -> None:
        assert ULID_PATTERN.match(generate_ulid())

    def test_unique(self) -> None:
        assert len({generate_ulid() for _ in range(100)}) == 100


class TestExchangeIdContext:
    def test_bound_id_added_to_events(self) -> None:
        set_exchange_id("01KJ0JRVHYA7KX32VPN5ZSCTMV")
        try:
            event = add_exchange_id(None, "info", {"event": "exchange_passed"})  # type: ignore[arg-type]
            assert event["exchange_id"] == "01KJ0JRVHYA7KX32VPN5ZSCTMV"
        finally:
            clear_exchange_id()

    def test_no_id_outside_an_exchange(self) -> None:
        clear_exchange_id()
        assert exchange_id_var.get() is None
        assert "exchange_id" not in add_exchange_id(None, "info", {"event": "x"})  # type: ignore[arg-type]

#!/usr/bin/env python3
"""Demo client for StubGuard.

Fires the Ewyrys scenarios at a running StubGuard (demo/config.yaml) and shows:
  ✅ PASS    : stub response survived the contract check unchanged
  🚫 REWRITE : StubGuard replaced it with a 401 / 400 diagnostic

Usage:
    STUBGUARD_CONFIG=demo/config.yaml stubguard &
    python3 demo/demo_client.py [--url http://127.0.0.1:8000]
"""

import argparse
import sys

import httpx

STUBGUARD_URL = "http://127.0.0.1:8000"
BASE = "/ewyrys-epuc/v1.0/application"
AUTH = {"Authorization": "Bearer demo-token"}

RESET = "\033[0m"
GREEN = "\033[92m"
RED = "\033[91m"
GRAY = "\033[90m"

# ── Preset scenarios ──────────────────────────────────────────────────────────
SCENARIOS = [
    {
        "label": "Create application",
        "method": "POST", "path": BASE, "headers": AUTH,
        "json": {"businessKey": "businesskey-ok", "applicant": "Jan"},
        "expect": 201,
    },
    {
        "label": "Create application without a token",
        "method": "POST", "path": BASE, "headers": {},
        "json": {"businessKey": "businesskey-ok", "applicant": "Jan"},
        "expect": 401,
    },
    {
        "label": "Create application with broken JSON",
        "method": "POST", "path": BASE,
        "headers": {**AUTH, "Content-Type": "application/json"},
        "content": '{"businessKey": ',
        "expect": 400,
    },
    {
        "label": "Conflict fixture",
        "method": "POST", "path": BASE, "headers": AUTH,
        "json": {"businessKey": "businesskey-conflict", "applicant": "Jan"},
        "expect": 409,
    },
    {
        "label": "Update status of unknown application",
        "method": "PUT", "path": f"{BASE}/businesskey-notfound", "headers": AUTH,
        "json": {"status": "ACCEPTED"},
        "expect": 404,
    },
    {
        "label": "Stub fixture that breaks the contract",
        "method": "PUT", "path": f"{BASE}/businesskey-malformed", "headers": AUTH,
        "json": {"status": "ACCEPTED"},
        "expect": 400,
    },
]


def run(url: str) -> int:
    failures = 0
    with httpx.Client(base_url=url, timeout=10.0) as client:
        for scenario in SCENARIOS:
            response = client.request(
                scenario["method"],
                scenario["path"],
                headers=scenario["headers"],
                json=scenario.get("json"),
                content=scenario.get("content"),
            )
            rewritten = response.headers.get("content-type", "").startswith("text/plain")
            tag = f"{RED}🚫 REWRITE{RESET}" if rewritten else f"{GREEN}✅ PASS{RESET}"
            print(f"{tag} {scenario['label']} → {response.status_code}")
            if rewritten:
                for line in response.text.splitlines():
                    print(f"    {GRAY}{line}{RESET}")
            if response.status_code != scenario["expect"]:
                failures += 1
                print(f"    {RED}expected {scenario['expect']}{RESET}")
    return failures


def main() -> None:
    parser = argparse.ArgumentParser(description="StubGuard demo client")
    parser.add_argument("--url", default=STUBGUARD_URL)
    args = parser.parse_args()
    try:
        failures = run(args.url)
    except httpx.ConnectError:
        print(f"{RED}StubGuard is not running at {args.url}{RESET}")
        sys.exit(1)
    sys.exit(1 if failures else 0)


if __name__ == "__main__":
    main()

# ruff: noqa: E402
"""Check that both cat upstreams answer, from an installed project or a bare checkout."""

from __future__ import annotations

import asyncio
from pathlib import Path
import sys

REPO_ROOT = Path(__file__).resolve().parents[2]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

import httpx

from whisker.app.readiness.service import (
    ping_upstream,
    readiness_budget,
    upstream_targets,
)
from whisker.app.retry.contracts import RetryTimeoutError
from whisker.app.retry.service import wait_until_ok
from whisker.core.config import AppConfig, load_app_config


def _print_result(name: str, ok: bool, detail: str) -> bool:
    status = "OK" if ok else "FAIL"
    print(f"[{status}] {name}: {detail}")
    return ok


async def _verify_upstream(
    client: httpx.AsyncClient,
    name: str,
    url: str,
    config: AppConfig,
) -> bool:
    budget = readiness_budget(config)
    try:
        status_code = await wait_until_ok(
            lambda: ping_upstream(client, url),
            total_timeout=budget.total_timeout,
            attempt_timeout=budget.attempt_timeout,
            poll_interval=budget.poll_interval,
        )
    except RetryTimeoutError as exc:
        return _print_result(name, False, f"unreachable at {url}: {exc}")
    return _print_result(name, True, f"reachable at {url} (http {status_code})")


async def _verify_all(config: AppConfig) -> list[bool]:
    async with httpx.AsyncClient(timeout=config.upstream_timeout_seconds) as client:
        return [
            await _verify_upstream(client, name, url, config)
            for name, url in upstream_targets(config).items()
        ]


def main() -> int:
    print("Upstream connectivity verification")
    print("-" * 34)

    checks = asyncio.run(_verify_all(load_app_config()))

    if all(checks):
        print("All upstream checks passed.")
        return 0

    print("One or more upstreams are unreachable. Check the *_BASE_URL settings.")
    return 1


if __name__ == "__main__":
    raise SystemExit(main())

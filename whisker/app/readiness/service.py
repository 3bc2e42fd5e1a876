from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from whisker.app.retry.contracts import RetryBudget, RetryTimeoutError, Success
from whisker.app.retry.service import poll, wait_until_ok
from whisker.core.config import AppConfig

LOGGER = logging.getLogger(__name__)


class UpstreamUnavailableError(Exception):
    pass


@dataclass(frozen=True)
class UpstreamProbe:
    name: str
    ready: bool
    attempts: int
    reason: str


def upstream_targets(config: AppConfig) -> dict[str, str]:
    return {
        "cat_facts": config.cat_facts_api_base_url,
        "cat_images": config.cat_images_api_base_url,
    }


def readiness_budget(config: AppConfig) -> RetryBudget:
    total = config.readiness_timeout_seconds
    attempt = config.readiness_attempt_timeout_seconds or total or 1.0
    return RetryBudget(
        total_timeout=total,
        attempt_timeout=attempt,
        poll_interval=config.readiness_poll_interval_seconds,
    )


async def ping_upstream(client: httpx.AsyncClient, url: str) -> int:
    """Reachable means any response below 500; 4xx on a bare base URL is fine."""
    try:
        response = await client.get(url)
    except httpx.HTTPError as exc:
        raise UpstreamUnavailableError(f"Request to {url} failed: {exc}") from exc
    if response.status_code >= 500:
        raise UpstreamUnavailableError(f"{url} returned http {response.status_code}")
    return response.status_code


async def probe_upstream(
    client: httpx.AsyncClient,
    name: str,
    url: str,
    budget: RetryBudget,
) -> UpstreamProbe:
    outcome = await poll(lambda: ping_upstream(client, url), budget)
    if isinstance(outcome, Success):
        return UpstreamProbe(
            name=name,
            ready=True,
            attempts=outcome.attempts,
            reason=f"reachable_http_{outcome.value}",
        )
    if outcome.last_error is None:
        reason = "no_attempt_within_budget"
    else:
        reason = f"timed_out_{outcome.last_error.__class__.__name__}"
    return UpstreamProbe(
        name=name, ready=False, attempts=outcome.attempts, reason=reason
    )


async def probe_upstreams(
    client: httpx.AsyncClient,
    config: AppConfig,
) -> list[UpstreamProbe]:
    budget = readiness_budget(config)
    return list(
        await asyncio.gather(
            *(
                probe_upstream(client, name, url, budget)
                for name, url in upstream_targets(config).items()
            )
        )
    )


def build_readiness_report(probes: list[UpstreamProbe]) -> dict[str, Any]:
    return {
        "ready": all(probe.ready for probe in probes),
        "upstreams": {
            probe.name: {
                "ready": probe.ready,
                "attempts": probe.attempts,
                "reason": probe.reason,
            }
            for probe in probes
        },
    }


async def wait_for_upstreams(client: httpx.AsyncClient, config: AppConfig) -> bool:
    """Wait, concurrently, until every upstream answers or the startup wait ends."""
    results = await asyncio.gather(
        *(
            _wait_for_upstream(client, name, url, config)
            for name, url in upstream_targets(config).items()
        )
    )
    return all(results)


async def _wait_for_upstream(
    client: httpx.AsyncClient,
    name: str,
    url: str,
    config: AppConfig,
) -> bool:
    budget = readiness_budget(config)
    try:
        await wait_until_ok(
            lambda: ping_upstream(client, url),
            total_timeout=config.startup_wait_seconds,
            attempt_timeout=budget.attempt_timeout,
            poll_interval=budget.poll_interval,
        )
    except RetryTimeoutError as exc:
        LOGGER.warning(
            "upstream_wait_timed_out %s",
            json.dumps(
                {
                    "upstream": name,
                    "wait_seconds": config.startup_wait_seconds,
                    "error": str(exc.last_error) if exc.last_error else None,
                },
                sort_keys=True,
            ),
        )
        return False
    LOGGER.info("upstream_ready %s", json.dumps({"upstream": name}))
    return True

from __future__ import annotations

import logging
from dataclasses import replace

import httpx
import pytest
from fastapi.testclient import TestClient

from whisker.app.api.app import create_app
from whisker.app.readiness.service import (
    UpstreamProbe,
    build_readiness_report,
    probe_upstream,
    readiness_budget,
    wait_for_upstreams,
)
from whisker.app.retry.contracts import RetryBudget
from whisker.core.config import AppConfig


def _flaky_transport(failures: int) -> tuple[httpx.MockTransport, list[int]]:
    calls: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        if len(calls) <= failures:
            return httpx.Response(502)
        return httpx.Response(200, json={"ok": True})

    return httpx.MockTransport(handler), calls


def test_readiness_report_is_ready_only_when_every_upstream_is() -> None:
    report = build_readiness_report(
        [
            UpstreamProbe(name="cat_facts", ready=True, attempts=1, reason="ok"),
            UpstreamProbe(name="cat_images", ready=False, attempts=4, reason="down"),
        ]
    )

    assert report["ready"] is False
    assert report["upstreams"]["cat_facts"]["ready"] is True
    assert report["upstreams"]["cat_images"] == {
        "ready": False,
        "attempts": 4,
        "reason": "down",
    }


def test_readiness_budget_falls_back_when_attempt_timeout_is_zero(
    app_config: AppConfig,
) -> None:
    config = replace(app_config, readiness_attempt_timeout_seconds=0.0)

    budget = readiness_budget(config)

    assert budget.attempt_timeout == config.readiness_timeout_seconds


@pytest.mark.asyncio
async def test_probe_upstream_retries_until_reachable() -> None:
    transport, calls = _flaky_transport(failures=2)
    budget = RetryBudget(total_timeout=2.0, attempt_timeout=1.0, poll_interval=0.0)

    async with httpx.AsyncClient(transport=transport) as client:
        probe = await probe_upstream(client, "cat_facts", "http://facts.test", budget)

    assert probe == UpstreamProbe(
        name="cat_facts", ready=True, attempts=3, reason="reachable_http_200"
    )
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_probe_upstream_reports_timeout_reason() -> None:
    transport, _ = _flaky_transport(failures=10_000)
    budget = RetryBudget(total_timeout=0.1, attempt_timeout=1.0, poll_interval=0.01)

    async with httpx.AsyncClient(transport=transport) as client:
        probe = await probe_upstream(client, "cat_images", "http://images.test", budget)

    assert probe.ready is False
    assert probe.attempts >= 1
    assert probe.reason == "timed_out_UpstreamUnavailableError"


@pytest.mark.asyncio
async def test_probe_upstream_with_zero_budget_makes_no_request() -> None:
    transport, calls = _flaky_transport(failures=0)
    budget = RetryBudget(total_timeout=0.0, attempt_timeout=1.0, poll_interval=0.0)

    async with httpx.AsyncClient(transport=transport) as client:
        probe = await probe_upstream(client, "cat_images", "http://images.test", budget)

    assert probe.ready is False
    assert probe.reason == "no_attempt_within_budget"
    assert calls == []


def test_ready_endpoint_reports_ready_when_upstreams_answer(
    client: TestClient,
) -> None:
    response = client.get("/ready")

    assert response.status_code == 200
    assert response.json()["ready"] is True
    assert set(response.json()["upstreams"]) == {"cat_facts", "cat_images"}


def test_ready_endpoint_returns_503_when_an_upstream_is_failing(
    client: TestClient,
    mock_upstreams,
) -> None:
    mock_upstreams.fail_cat_images()

    response = client.get("/ready")

    assert response.status_code == 503
    assert response.json()["upstreams"]["cat_facts"]["ready"] is True
    assert response.json()["upstreams"]["cat_images"]["ready"] is False


@pytest.mark.asyncio
async def test_wait_for_upstreams_logs_and_returns_false_on_timeout(
    app_config: AppConfig,
    caplog,
) -> None:
    transport, _ = _flaky_transport(failures=10_000)
    config = replace(app_config, startup_wait_seconds=0.1)

    with caplog.at_level(logging.WARNING, logger="whisker.app.readiness.service"):
        async with httpx.AsyncClient(transport=transport) as client:
            ready = await wait_for_upstreams(client, config)

    assert ready is False
    assert any("upstream_wait_timed_out" in message for message in caplog.messages)


@pytest.mark.asyncio
async def test_wait_for_upstreams_returns_true_when_reachable(
    app_config: AppConfig,
) -> None:
    transport, _ = _flaky_transport(failures=1)
    config = replace(app_config, startup_wait_seconds=2.0)

    async with httpx.AsyncClient(transport=transport) as client:
        assert await wait_for_upstreams(client, config) is True


def test_app_starts_even_when_startup_wait_times_out(
    app_config: AppConfig,
    mock_upstreams,
    caplog,
) -> None:
    mock_upstreams.fail_cat_facts()
    app = create_app(
        replace(app_config, startup_wait_seconds=0.1),
        transport=mock_upstreams.transport(),
    )

    with caplog.at_level(logging.WARNING, logger="whisker.app.readiness.service"):
        with TestClient(app) as client:
            response = client.get("/health")

    assert response.status_code == 200
    assert any("upstream_wait_timed_out" in message for message in caplog.messages)

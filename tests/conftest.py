from __future__ import annotations

from typing import Callable, Iterator
from uuid import uuid4

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from opentelemetry.sdk.trace.export.in_memory_span_exporter import (
    InMemorySpanExporter,
)

from whisker.app.api.app import create_app
from whisker.core.config import AppConfig

CAT_FACTS_HOST = "cat-facts.test"
CAT_IMAGES_HOST = "cat-images.test"

Responder = Callable[[httpx.Request], httpx.Response]


class MockUpstreams:
    """In-process stand-in for the cat facts and cat images providers."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._routes: dict[tuple[str, str], Responder] = {}
        self._failing_hosts: set[str] = set()

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self._handle)

    def fact_requests(self) -> list[httpx.Request]:
        return self._requests_to(CAT_FACTS_HOST)

    def image_requests(self) -> list[httpx.Request]:
        return self._requests_to(CAT_IMAGES_HOST)

    def configure_cat_fact(self) -> str:
        fact = f"This cat is called '{uuid4()}'."
        self._routes[(CAT_FACTS_HOST, "/fact")] = lambda _request: httpx.Response(
            200, json={"fact": fact}
        )
        return fact

    def configure_cat_image_url(self) -> str:
        url = f"http://my-cat-pictures.com/{uuid4()}.jpg"
        self._routes[(CAT_IMAGES_HOST, "/v1/images/search")] = (
            lambda _request: httpx.Response(200, json=[{"url": url}])
        )
        return url

    def configure_empty_images(self) -> None:
        self._routes[(CAT_IMAGES_HOST, "/v1/images/search")] = (
            lambda _request: httpx.Response(200, json=[])
        )

    def fail_cat_facts(self) -> None:
        self._failing_hosts.add(CAT_FACTS_HOST)

    def fail_cat_images(self) -> None:
        self._failing_hosts.add(CAT_IMAGES_HOST)

    def _requests_to(self, host: str) -> list[httpx.Request]:
        return [request for request in self.requests if request.url.host == host]

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host in self._failing_hosts:
            return httpx.Response(500, text="upstream exploded")
        responder = self._routes.get((request.url.host, request.url.path))
        if responder is None:
            return httpx.Response(404, json={"detail": "not found"})
        return responder(request)


@pytest.fixture
def app_config() -> AppConfig:
    return AppConfig(
        app_name="Whisker Cat API",
        app_version="0.1.0",
        environment="test",
        host="127.0.0.1",
        port=12345,
        cat_facts_api_base_url=f"http://{CAT_FACTS_HOST}",
        cat_images_api_base_url=f"http://{CAT_IMAGES_HOST}",
        upstream_timeout_seconds=5.0,
        otel_collector_url=None,
        otel_service_name="whisker-test",
        enable_tracing=True,
        readiness_timeout_seconds=0.5,
        readiness_attempt_timeout_seconds=0.2,
        readiness_poll_interval_seconds=0.01,
        startup_wait_seconds=0.0,
        log_level="INFO",
    )


@pytest.fixture
def mock_upstreams() -> MockUpstreams:
    return MockUpstreams()


@pytest.fixture
def span_exporter() -> InMemorySpanExporter:
    return InMemorySpanExporter()


@pytest.fixture
def app(
    app_config: AppConfig,
    mock_upstreams: MockUpstreams,
    span_exporter: InMemorySpanExporter,
) -> FastAPI:
    return create_app(
        app_config,
        transport=mock_upstreams.transport(),
        span_exporter=span_exporter,
    )


@pytest.fixture
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app) as test_client:
        yield test_client

from __future__ import annotations

import time
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse, PlainTextResponse
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import AsyncOpenTelemetryTransport
from opentelemetry.sdk.trace.export import SpanExporter
from opentelemetry.trace import Status, StatusCode

from whisker.app.aggregation.contracts import AggregationError, CatFactAndPicture
from whisker.app.aggregation.service import aggregate
from whisker.app.observability.service import Telemetry, build_telemetry
from whisker.app.readiness.service import (
    build_readiness_report,
    probe_upstreams,
    wait_for_upstreams,
)
from whisker.app.upstream.cat_facts import CatFactsClient
from whisker.app.upstream.cat_images import CatImagesClient
from whisker.core.config import AppConfig, load_app_config

METRICS_PATH = "/metrics"
UNMATCHED_ENDPOINT = "unmatched"


def _build_http_client(
    config: AppConfig,
    telemetry: Telemetry,
    transport: httpx.AsyncBaseTransport | None,
) -> httpx.AsyncClient:
    active_transport = transport or httpx.AsyncHTTPTransport()
    if config.enable_tracing:
        active_transport = AsyncOpenTelemetryTransport(
            active_transport, tracer_provider=telemetry.tracer_provider
        )
    return httpx.AsyncClient(
        transport=active_transport, timeout=config.upstream_timeout_seconds
    )


def _endpoint_label(request: Request) -> str:
    route = request.scope.get("route")
    path = getattr(route, "path", None)
    return path if isinstance(path, str) else UNMATCHED_ENDPOINT


def format_error_chain(exc: BaseException) -> str:
    lines = [str(getattr(exc, "summary", exc))]
    causes: list[str] = []
    current = exc.__cause__
    while current is not None:
        causes.append(str(current) or current.__class__.__name__)
        current = current.__cause__
    if causes:
        lines.extend(["", "Caused by:"])
        lines.extend(f"    {index}: {cause}" for index, cause in enumerate(causes))
    return "\n".join(lines)


def create_app(
    config: AppConfig | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
    span_exporter: SpanExporter | None = None,
) -> FastAPI:
    config = config or load_app_config()
    telemetry = build_telemetry(config, span_exporter=span_exporter)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Each startup owns its client; the tracer provider outlives restarts.
        http_client = _build_http_client(config, telemetry, transport)
        app.state.http_client = http_client
        app.state.cat_facts = CatFactsClient(
            base_url=config.cat_facts_api_base_url, client=http_client
        )
        app.state.cat_images = CatImagesClient(
            base_url=config.cat_images_api_base_url, client=http_client
        )
        try:
            if config.startup_wait_seconds > 0:
                await wait_for_upstreams(http_client, config)
            yield
        finally:
            await http_client.aclose()
            telemetry.flush()

    app = FastAPI(title=config.app_name, version=config.app_version, lifespan=lifespan)
    app.state.telemetry = telemetry

    @app.middleware("http")
    async def record_http_metrics(request: Request, call_next) -> Response:
        started_at = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            _record(request, 500, started_at)
            raise
        _record(request, response.status_code, started_at)
        return response

    def _record(request: Request, status: int, started_at: float) -> None:
        endpoint = _endpoint_label(request)
        if endpoint == METRICS_PATH:
            return
        telemetry.record_request(
            endpoint=endpoint,
            method=request.method,
            status=status,
            elapsed_seconds=time.perf_counter() - started_at,
        )

    @app.get("/")
    async def root() -> JSONResponse:
        return JSONResponse(
            content={
                "name": config.app_name,
                "version": config.app_version,
                "environment": config.environment,
                "docs": "/docs",
            }
        )

    @app.get("/health")
    async def health() -> dict[str, bool]:
        return {"ok": True}

    @app.get("/ready")
    async def ready(request: Request) -> JSONResponse:
        probes = await probe_upstreams(request.app.state.http_client, config)
        report = build_readiness_report(probes)
        status_code = 200 if bool(report.get("ready")) else 503
        return JSONResponse(content=report, status_code=status_code)

    @app.get("/cat")
    async def get_cat(request: Request) -> Response:
        state = request.app.state
        with telemetry.tracer.start_as_current_span("get_cat_fact_and_image") as span:
            try:
                result = await aggregate(state.cat_facts, state.cat_images)
            except AggregationError as exc:
                span.set_status(Status(StatusCode.ERROR))
                span.set_attribute("whisker.failed_source", exc.source)
                return PlainTextResponse(format_error_chain(exc), status_code=500)
        payload = CatFactAndPicture(fact=result.fact, image_url=result.image_url)
        return JSONResponse(content=payload.model_dump())

    @app.get(METRICS_PATH, include_in_schema=False)
    async def metrics() -> Response:
        body, content_type = telemetry.render_metrics()
        return Response(content=body, media_type=content_type)

    if config.enable_tracing:
        FastAPIInstrumentor.instrument_app(
            app,
            tracer_provider=telemetry.tracer_provider,
            excluded_urls=f"{METRICS_PATH},/health",
        )

    return app

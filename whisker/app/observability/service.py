from __future__ import annotations

from dataclasses import dataclass

from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    SimpleSpanProcessor,
    SpanExporter,
)
from opentelemetry.trace import Tracer
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

from whisker.core.config import AppConfig

REQUEST_LABELS = ("endpoint", "method", "status")
REQUEST_DURATION_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)


@dataclass(frozen=True)
class Telemetry:
    """Process-scoped metrics registry and tracer provider.

    Built once per application and handed to whatever emits telemetry.
    Nothing here touches the global OpenTelemetry provider or the default
    prometheus registry, so several instances can live side by side.
    """

    registry: CollectorRegistry
    tracer_provider: TracerProvider
    http_requests_total: Counter
    http_requests_duration_seconds: Histogram
    tracer_name: str

    @property
    def tracer(self) -> Tracer:
        return self.tracer_provider.get_tracer(self.tracer_name)

    def record_request(
        self,
        endpoint: str,
        method: str,
        status: int,
        elapsed_seconds: float,
    ) -> None:
        labels = {"endpoint": endpoint, "method": method, "status": str(status)}
        self.http_requests_total.labels(**labels).inc()
        self.http_requests_duration_seconds.labels(**labels).observe(
            max(elapsed_seconds, 0.0)
        )

    def render_metrics(self) -> tuple[bytes, str]:
        return generate_latest(self.registry), CONTENT_TYPE_LATEST

    def flush(self) -> None:
        self.tracer_provider.force_flush()


def build_telemetry(
    config: AppConfig,
    *,
    span_exporter: SpanExporter | None = None,
) -> Telemetry:
    registry = CollectorRegistry()
    http_requests_total = Counter(
        "http_requests_total",
        "Total number of HTTP requests",
        REQUEST_LABELS,
        registry=registry,
    )
    http_requests_duration_seconds = Histogram(
        "http_requests_duration_seconds",
        "HTTP request duration in seconds",
        REQUEST_LABELS,
        buckets=REQUEST_DURATION_BUCKETS,
        registry=registry,
    )

    tracer_provider = TracerProvider(
        resource=Resource.create(
            {
                "service.name": config.otel_service_name,
                "service.version": config.app_version,
                "deployment.environment": config.environment,
            }
        )
    )
    if span_exporter is not None:
        tracer_provider.add_span_processor(SimpleSpanProcessor(span_exporter))
    elif config.otel_collector_url:
        tracer_provider.add_span_processor(
            BatchSpanProcessor(_build_otlp_exporter(config.otel_collector_url))
        )

    return Telemetry(
        registry=registry,
        tracer_provider=tracer_provider,
        http_requests_total=http_requests_total,
        http_requests_duration_seconds=http_requests_duration_seconds,
        tracer_name=config.otel_service_name,
    )


def _build_otlp_exporter(endpoint: str) -> SpanExporter:
    from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
        OTLPSpanExporter,
    )

    return OTLPSpanExporter(endpoint=endpoint)

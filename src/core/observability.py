"""Request metrics and distributed tracing using OpenTelemetry.

Metrics are recorded on module-level instruments created from the global
meter. Until ``setup_metrics`` installs a provider they are no-ops, so the
metrics middleware can always record without checking configuration.

Exporters:
- **console**: metrics and spans are written through Loguru (development)
- **otlp**: OTLP/gRPC to a collector (Jaeger, Prometheus, cloud agents)
- **none**: nothing is exported
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Final

from loguru import logger
from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import (
    MetricExporter,
    MetricExportResult,
    MetricsData,
    PeriodicExportingMetricReader,
)
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import ReadableSpan, TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    SpanExporter,
    SpanExportResult,
)
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased

from src.core.context import RequestContext

if TYPE_CHECKING:
    from collections.abc import Sequence

    from fastapi import FastAPI

    from src.core.config import Settings
    from src.core.types import MetricAttributes

SERVICE_NAME_KEY: Final[str] = "service.name"
SERVICE_VERSION_KEY: Final[str] = "service.version"
ENVIRONMENT_KEY: Final[str] = "deployment.environment"
DEFAULT_OTLP_ENDPOINT: Final[str] = "http://localhost:4317"

_meter = metrics.get_meter("src.api.metrics")

request_counter = _meter.create_counter(
    "http.server.requests",
    unit="{request}",
    description="Number of HTTP requests served",
)
request_duration_histogram = _meter.create_histogram(
    "http.server.duration",
    unit="ms",
    description="Time spent serving HTTP requests",
)
error_counter = _meter.create_counter(
    "http.server.errors",
    unit="{request}",
    description="Requests that failed or were answered with a 5xx status",
)
active_requests = _meter.create_up_down_counter(
    "http.server.active_requests",
    unit="{request}",
    description="Requests currently being served",
)


def record_request(
    method: str, route: str, status_code: int, duration_ms: float
) -> None:
    """Record one finished request on the request instruments.

    Args:
        method: HTTP method.
        route: Route template, or the raw path when no route matched.
        status_code: Response status code.
        duration_ms: Time spent serving the request.
    """
    attributes: MetricAttributes = {
        "http.method": method,
        "http.route": route,
        "http.status_code": status_code,
    }
    request_counter.add(1, attributes)
    request_duration_histogram.record(duration_ms, attributes)
    if status_code >= 500:  # noqa: PLR2004 - server error class
        error_counter.add(1, attributes)


def record_failure(method: str, route: str, error_type: str) -> None:
    """Record a request that raised instead of producing a response."""
    attributes: MetricAttributes = {
        "http.method": method,
        "http.route": route,
        "error.type": error_type,
    }
    error_counter.add(1, attributes)


class LoguruMetricExporter(MetricExporter):
    """Metric exporter that writes collected metrics through Loguru."""

    def __init__(self) -> None:
        super().__init__()

    def export(
        self,
        metrics_data: MetricsData,
        timeout_millis: float = 10_000,
        **kwargs: Any,  # noqa: ANN401 - exporter interface
    ) -> MetricExportResult:
        """Log one line per exported metric."""
        _ = timeout_millis, kwargs
        for resource_metrics in metrics_data.resource_metrics:
            for scope_metrics in resource_metrics.scope_metrics:
                for metric in scope_metrics.metrics:
                    logger.bind(
                        metric_name=metric.name,
                        unit=metric.unit,
                        data_points=len(list(metric.data.data_points)),
                    ).debug("Metric exported: {}", metric.name)
        return MetricExportResult.SUCCESS

    def force_flush(self, timeout_millis: float = 10_000) -> bool:
        """Nothing is buffered."""
        _ = timeout_millis
        return True

    def shutdown(
        self,
        timeout_millis: float = 30_000,
        **kwargs: Any,  # noqa: ANN401 - exporter interface
    ) -> None:
        """Nothing to release."""
        _ = timeout_millis, kwargs


class LoguruSpanExporter(SpanExporter):
    """Span exporter that sends traces through Loguru instead of stdout."""

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        """Log a structured entry for every finished span."""
        for span in spans:
            span_context = span.get_span_context()
            if not span_context:
                continue

            attributes = dict(span.attributes or {})
            duration_ms = None
            if span.end_time and span.start_time:
                duration_ms = (span.end_time - span.start_time) // 1_000_000

            # ASGI send/receive spans are noise in development
            if span.name.endswith((" http send", " http receive")):
                continue

            logger.bind(
                trace_id=f"0x{span_context.trace_id:032x}",
                span_id=f"0x{span_context.span_id:016x}",
                correlation_id=attributes.get("correlation_id"),
                span_name=span.name,
                duration_ms=duration_ms,
                status=span.status.status_code.name,
            ).debug("Trace span completed: {}", span.name)

        return SpanExportResult.SUCCESS


def _build_resource(settings: Settings) -> Resource:
    return Resource.create(
        {
            SERVICE_NAME_KEY: settings.app_name,
            SERVICE_VERSION_KEY: settings.app_version,
            ENVIRONMENT_KEY: settings.environment,
        }
    )


def get_metric_exporter(settings: Settings) -> MetricExporter | None:
    """Get the metric exporter for the configured exporter type.

    Args:
        settings: Application settings.

    Returns:
        MetricExporter | None: Configured exporter or None if disabled.
    """
    config = settings.observability_config
    if config.exporter_type == "console":
        return LoguruMetricExporter()
    if config.exporter_type == "otlp":
        endpoint = config.exporter_endpoint or DEFAULT_OTLP_ENDPOINT
        logger.info("Using OTLP metric exporter at {}", endpoint)
        return OTLPMetricExporter(
            endpoint=endpoint, insecure=settings.environment == "development"
        )
    return None


def get_span_exporter(settings: Settings) -> SpanExporter | None:
    """Get the span exporter for the configured exporter type.

    Args:
        settings: Application settings.

    Returns:
        SpanExporter | None: Configured exporter or None if disabled.
    """
    config = settings.observability_config
    if config.exporter_type == "console":
        return LoguruSpanExporter()
    if config.exporter_type == "otlp":
        endpoint = config.exporter_endpoint or DEFAULT_OTLP_ENDPOINT
        logger.info("Using OTLP span exporter at {}", endpoint)
        return OTLPSpanExporter(
            endpoint=endpoint, insecure=settings.environment == "development"
        )
    return None


def setup_metrics(settings: Settings) -> MeterProvider | None:
    """Install the global meter provider that backs the request instruments.

    Args:
        settings: Application settings.

    Returns:
        MeterProvider | None: The installed provider, or None when metrics
            are disabled or have nowhere to go.
    """
    config = settings.observability_config
    if not config.enable_metrics:
        logger.info("Metrics disabled by configuration")
        return None

    exporter = get_metric_exporter(settings)
    if exporter is None:
        logger.info("Metrics export disabled")
        return None

    reader = PeriodicExportingMetricReader(
        exporter, export_interval_millis=config.metrics_export_interval_ms
    )
    provider = MeterProvider(
        resource=_build_resource(settings), metric_readers=[reader]
    )
    metrics.set_meter_provider(provider)

    logger.info(
        "Metrics configured",
        exporter_type=config.exporter_type,
        export_interval_ms=config.metrics_export_interval_ms,
    )
    return provider


def setup_tracing(settings: Settings) -> TracerProvider | None:
    """Configure OpenTelemetry tracing with the configured exporter.

    Args:
        settings: Application settings.

    Returns:
        TracerProvider | None: The installed provider, or None when disabled.
    """
    config = settings.observability_config
    if not config.enable_tracing:
        logger.info("Tracing disabled by configuration")
        return None

    tracer_provider = TracerProvider(
        resource=_build_resource(settings),
        sampler=TraceIdRatioBased(config.trace_sample_rate),
    )

    exporter = get_span_exporter(settings)
    if exporter:
        tracer_provider.add_span_processor(BatchSpanProcessor(exporter))

    trace.set_tracer_provider(tracer_provider)

    logger.info(
        "Tracing configured",
        exporter_type=config.exporter_type,
        sample_rate=config.trace_sample_rate,
    )
    return tracer_provider


def instrument_app(app: FastAPI, settings: Settings) -> None:
    """Instrument the FastAPI application for tracing.

    Args:
        app: FastAPI application to instrument.
        settings: Application settings.
    """
    if not settings.observability_config.enable_tracing:
        return

    excluded = [settings.openapi_url]
    if settings.docs_url:
        excluded.append(settings.docs_url)

    FastAPIInstrumentor.instrument_app(
        app,
        excluded_urls=",".join(excluded),
        server_request_hook=add_correlation_id_to_span,
    )
    logger.info("Application instrumented for tracing")


def add_correlation_id_to_span(span: trace.Span, scope: dict[str, Any]) -> None:
    """Add the correlation ID of the current request to the server span.

    Args:
        span: The current span.
        scope: ASGI scope dict containing request information.
    """
    if not span.is_recording():
        return

    if correlation_id := RequestContext.get_correlation_id():
        span.set_attribute("correlation_id", correlation_id)

    headers = dict(scope.get("headers", []))
    if request_id := headers.get(b"x-request-id", b"").decode("latin-1"):
        span.set_attribute("request_id", request_id)


def shutdown_telemetry(
    meter_provider: MeterProvider | None, tracer_provider: TracerProvider | None
) -> None:
    """Flush and stop telemetry providers created by this module."""
    if meter_provider is not None:
        meter_provider.shutdown()
    if tracer_provider is not None:
        tracer_provider.shutdown()

"""Tracing and log correlation for the API process and its background loop."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from importlib.metadata import PackageNotFoundError, version
import logging
import os

from fastapi import FastAPI
from opentelemetry import context as otel_context
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.sdk.resources import DEPLOYMENT_ENVIRONMENT, SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.sampling import ParentBased, TraceIdRatioBased
from opentelemetry.util.types import AttributeValue

from app.core.config import Settings

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s [trace_id=%(trace_id)s span_id=%(span_id)s]"

# OTLPSpanExporter reads these (and the matching HEADERS/TIMEOUT variables) itself.
_OTLP_ENDPOINT_ENV = ("OTEL_EXPORTER_OTLP_TRACES_ENDPOINT", "OTEL_EXPORTER_OTLP_ENDPOINT")
_TASKS_TRACER_NAME = "jobboard.tasks"
_HTTPX_INSTRUMENTOR = HTTPXClientInstrumentor()


class TraceContextFilter(logging.Filter):
    """Stamps the active trace and span ids onto every record it sees."""

    def filter(self, record: logging.LogRecord) -> bool:
        span_context = trace.get_current_span().get_span_context()
        if span_context.is_valid:
            record.trace_id = format(span_context.trace_id, "032x")
            record.span_id = format(span_context.span_id, "016x")
        else:
            record.trace_id = "-"
            record.span_id = "-"
        return True


@dataclass(slots=True)
class TelemetryRuntime:
    app: FastAPI
    provider: TracerProvider | None = None

    @property
    def enabled(self) -> bool:
        return self.provider is not None

    def shutdown(self) -> None:
        if self.provider is None:
            return
        FastAPIInstrumentor.uninstrument_app(self.app)
        _HTTPX_INSTRUMENTOR.uninstrument()
        self.provider.force_flush()
        self.provider.shutdown()
        self.provider = None


def configure_logging(level: int = logging.INFO) -> None:
    root = logging.getLogger()
    if root.handlers:
        return
    handler = logging.StreamHandler()
    handler.addFilter(TraceContextFilter())
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    root.setLevel(level)


def setup_api_telemetry(app: FastAPI, settings: Settings) -> TelemetryRuntime:
    configure_logging()
    if not settings.otel_enabled:
        return TelemetryRuntime(app=app)

    provider = TracerProvider(
        resource=build_resource(settings),
        sampler=ParentBased(TraceIdRatioBased(settings.otel_trace_sample_ratio)),
    )
    exporter = build_span_exporter(settings)
    if exporter is not None:
        provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)
    FastAPIInstrumentor.instrument_app(app, tracer_provider=provider, excluded_urls="healthz")
    _HTTPX_INSTRUMENTOR.instrument(tracer_provider=provider)
    logger.info("tracing enabled service=%s exporter=%s", settings.otel_service_name, exporter is not None)
    return TelemetryRuntime(app=app, provider=provider)


def build_resource(settings: Settings) -> Resource:
    return Resource.create(
        {
            SERVICE_NAME: settings.otel_service_name,
            SERVICE_VERSION: _service_version(),
            DEPLOYMENT_ENVIRONMENT: settings.environment,
            "jobboard.base_url": settings.base_url,
            "jobboard.tasks.enabled": settings.tasks_enabled,
            "jobboard.tasks.interval_seconds": settings.task_interval_seconds,
        }
    )


def build_span_exporter(settings: Settings) -> OTLPSpanExporter | None:
    if settings.otel_exporter_otlp_endpoint:
        return OTLPSpanExporter(endpoint=settings.otel_exporter_otlp_endpoint)
    if any(os.getenv(name) for name in _OTLP_ENDPOINT_ENV):
        return OTLPSpanExporter()
    return None


@contextmanager
def background_task_span(name: str, attributes: Mapping[str, AttributeValue] | None = None) -> Iterator[trace.Span]:
    """Open ``name`` as the root span of a new trace.

    Scheduler passes are not caused by any request, so each one gets its own
    trace id and the log lines it emits group under it.
    """
    tracer = trace.get_tracer(_TASKS_TRACER_NAME)
    with tracer.start_as_current_span(
        name,
        context=otel_context.Context(),
        kind=trace.SpanKind.INTERNAL,
        attributes=attributes,
    ) as span:
        yield span


def _service_version() -> str:
    try:
        return version("jobboard")
    except PackageNotFoundError:
        return "unknown"

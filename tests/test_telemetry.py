from __future__ import annotations

import logging

import pytest
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.trace import TracerProvider

from app.core.config import Settings
from app.core.telemetry import TraceContextFilter, build_resource, build_span_exporter


def _record() -> logging.LogRecord:
    return logging.LogRecord("jobboard", logging.INFO, __file__, 1, "message", None, None)


@pytest.fixture
def no_otlp_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("OTEL_EXPORTER_OTLP_ENDPOINT", raising=False)
    monkeypatch.delenv("OTEL_EXPORTER_OTLP_TRACES_ENDPOINT", raising=False)


def test_no_exporter_without_endpoint(no_otlp_env: None) -> None:
    assert build_span_exporter(Settings(otel_exporter_otlp_endpoint=None)) is None


def test_exporter_uses_configured_endpoint(no_otlp_env: None) -> None:
    exporter = build_span_exporter(Settings(otel_exporter_otlp_endpoint="http://collector:4318/v1/traces"))
    assert isinstance(exporter, OTLPSpanExporter)


def test_exporter_follows_standard_otel_environment(no_otlp_env: None, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://collector:4318")
    assert isinstance(build_span_exporter(Settings(otel_exporter_otlp_endpoint=None)), OTLPSpanExporter)


def test_resource_describes_deployment() -> None:
    settings = Settings(environment="staging", otel_service_name="jobboard-api", tasks_enabled=False)

    attributes = build_resource(settings).attributes

    assert attributes["service.name"] == "jobboard-api"
    assert attributes["deployment.environment"] == "staging"
    assert attributes["jobboard.tasks.enabled"] is False


def test_log_filter_without_active_span() -> None:
    record = _record()

    assert TraceContextFilter().filter(record) is True
    assert (record.trace_id, record.span_id) == ("-", "-")


def test_log_filter_stamps_active_span() -> None:
    tracer = TracerProvider().get_tracer("tests")
    record = _record()

    with tracer.start_as_current_span("request") as span:
        TraceContextFilter().filter(record)
        context = span.get_span_context()

    assert record.trace_id == format(context.trace_id, "032x")
    assert record.span_id == format(context.span_id, "016x")

"""OpenTelemetry + Prometheus fallback wiring for ccboard.

Every recorder is a no-op until ``initialize`` runs with
``CCBOARD_OTEL_ENABLED`` set. The Prometheus exporter is started alongside
OpenTelemetry when ``CCBOARD_PROM_PORT`` is positive.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any

from fastapi import FastAPI

from ccboard import config

logger = logging.getLogger("ccboard.observability")

# key -> (metric name, kind, description, label names)
_METRICS: dict[str, tuple[str, str, str, tuple[str, ...]]] = {
    "reloads": (
        "ccboard_reloads_total", "counter",
        "Source reloads applied to the dashboard state", ("source", "result"),
    ),
    "reload_latency": (
        "ccboard_reload_latency_ms", "histogram",
        "Latency of task document and hook log reloads", ("source", "result"),
    ),
    "parser_failures": (
        "ccboard_parser_failures_total", "counter",
        "Task document and hook line parse failures", ("parser",),
    ),
    "hook_events": (
        "ccboard_hook_events_total", "counter",
        "Hook events folded into agent state", ("event_type",),
    ),
}

_initialized = False
_tracer: Any | None = None
_providers: list[Any] = []
_otel_instruments: dict[str, Any] = {}
_prom_instruments: dict[str, Any] = {}


def _signal_endpoint(base_endpoint: str, signal: str) -> str | None:
    """``http://host:4318`` -> ``http://host:4318/v1/<signal>``."""
    base = (base_endpoint or "").strip().rstrip("/")
    if not base:
        return None
    if base.endswith(f"/v1/{signal}"):
        return base
    if base.endswith("/v1"):
        base = base[: -len("/v1")]
    return f"{base}/v1/{signal}"


def _label(value: str) -> str:
    return (value or "").strip() or "unknown"


def initialize(app: FastAPI | None = None) -> None:
    global _initialized, _tracer

    if _initialized:
        return
    _initialized = True

    if not config.OTEL_ENABLED:
        logger.info("OpenTelemetry disabled (CCBOARD_OTEL_ENABLED=false)")
        return

    try:
        from opentelemetry import metrics, trace
        from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
        from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
        from opentelemetry.sdk.metrics import MeterProvider
        from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor
    except ImportError as exc:
        logger.warning("OpenTelemetry dependencies unavailable: %s", exc)
        return

    service_name = config.OTEL_SERVICE_NAME or "ccboard"
    resource = Resource.create({"service.name": service_name, "service.namespace": "ccboard"})

    trace_provider = TracerProvider(resource=resource)
    trace_provider.add_span_processor(
        BatchSpanProcessor(OTLPSpanExporter(endpoint=_signal_endpoint(config.OTEL_ENDPOINT, "traces")))
    )
    trace.set_tracer_provider(trace_provider)

    reader = PeriodicExportingMetricReader(
        OTLPMetricExporter(endpoint=_signal_endpoint(config.OTEL_ENDPOINT, "metrics"))
    )
    meter_provider = MeterProvider(resource=resource, metric_readers=[reader])
    metrics.set_meter_provider(meter_provider)

    meter = metrics.get_meter("ccboard")
    for key, (name, kind, description, _labels) in _METRICS.items():
        if kind == "counter":
            _otel_instruments[key] = meter.create_counter(name, unit="1", description=description)
        else:
            _otel_instruments[key] = meter.create_histogram(name, unit="ms", description=description)

    _providers.extend([meter_provider, trace_provider])
    _tracer = trace.get_tracer("ccboard")

    if app is not None:
        FastAPIInstrumentor.instrument_app(app)
    if config.PROM_PORT > 0:
        _start_prometheus()

    logger.info("OpenTelemetry initialized (service=%s endpoint=%s)", service_name, config.OTEL_ENDPOINT)


def _start_prometheus() -> None:
    try:
        from prometheus_client import Counter, Histogram, start_http_server
    except ImportError as exc:
        logger.warning("Prometheus fallback not started: %s", exc)
        return
    try:
        start_http_server(config.PROM_PORT)
    except OSError as exc:
        logger.warning("Prometheus fallback not started on port %s: %s", config.PROM_PORT, exc)
        return

    for key, (name, kind, description, labels) in _METRICS.items():
        factory = Counter if kind == "counter" else Histogram
        _prom_instruments[key] = factory(name, description, list(labels))
    logger.info("Prometheus fallback metrics server listening on port %s", config.PROM_PORT)


def shutdown() -> None:
    """Flush and stop the OTel providers. Prometheus stays up with the process."""
    global _tracer
    for provider in _providers:
        try:
            provider.shutdown()
        except Exception as exc:  # noqa: BLE001
            logger.debug("Telemetry provider shutdown failed: %s", exc)
    _providers.clear()
    _otel_instruments.clear()
    _tracer = None


@contextmanager
def start_span(name: str, attributes: dict[str, Any] | None = None):
    if _tracer is None:
        yield None
        return
    with _tracer.start_as_current_span(name) as span:
        for key, value in (attributes or {}).items():
            if value is not None:
                span.set_attribute(key, value)
        yield span


def _emit(key: str, value: float, labels: dict[str, str]) -> None:
    kind = _METRICS[key][1]
    instrument = _otel_instruments.get(key)
    if instrument is not None:
        if kind == "counter":
            instrument.add(value, labels)
        else:
            instrument.record(value, labels)
    prom = _prom_instruments.get(key)
    if prom is not None:
        if kind == "counter":
            prom.labels(**labels).inc(value)
        else:
            prom.labels(**labels).observe(value)


def record_reload(source: str, result: str, duration_ms: float) -> None:
    labels = {"source": _label(source), "result": _label(result)}
    _emit("reloads", 1, labels)
    _emit("reload_latency", max(0.0, float(duration_ms)), labels)


def record_parser_failure(parser: str, count: int = 1) -> None:
    count = max(0, int(count))
    if count:
        _emit("parser_failures", count, {"parser": _label(parser)})


def record_hook_events(event_type: str, count: int = 1) -> None:
    count = max(0, int(count))
    if count:
        _emit("hook_events", count, {"event_type": _label(event_type)})

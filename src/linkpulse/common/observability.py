"""Logging and tracing for the exporter and the poll CLI."""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING, Any, Dict

import structlog
from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.sampling import ParentBased, TraceIdRatioBased
from structlog.contextvars import bind_contextvars, clear_contextvars

from .. import __version__

if TYPE_CHECKING:
    from .settings import ExporterSettings

# health checks and self-metrics scrapes stay out of traces
UNTRACED_URLS = "/ping,/metrics"

_logging_configured = False
_tracer_configured = False
_httpx_instrumented = False


def _log_level(level: str | int | None) -> int:
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        normalized = level.strip().upper()
        # bunyan style names used by older deployments
        normalized = {"TRACE": "DEBUG", "FATAL": "CRITICAL"}.get(normalized, normalized)
        numeric = logging.getLevelName(normalized)
        if isinstance(numeric, int):
            return numeric
    return logging.INFO


def configure_logging(service_name: str, level: str | int | None = None, **context: Any) -> None:
    """Route structlog through stdlib logging on stderr, one JSON object per event.

    Keyword ``context`` (the polled node URL, for instance) is bound into
    every event next to ``service``. Stdout is left to the poll CLI's output.
    """

    global _logging_configured
    numeric_level = _log_level(level)
    if not _logging_configured:
        logging.basicConfig(level=numeric_level, format="%(message)s", stream=sys.stderr)
        _logging_configured = True
    else:
        logging.getLogger().setLevel(numeric_level)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(numeric_level, logging.WARNING))

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.dict_tracebacks,
            structlog.processors.EventRenamer("message"),
            structlog.processors.JSONRenderer(sort_keys=True),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    clear_contextvars()
    bind_contextvars(service=service_name, **{key: value for key, value in context.items() if value is not None})


def parse_otlp_headers(headers: str | None) -> Dict[str, str]:
    if not headers:
        return {}
    result: Dict[str, str] = {}
    for item in headers.split(","):
        key, _, value = item.partition("=")
        if key.strip() and value.strip():
            result[key.strip()] = value.strip()
    return result


def tracing_resource(settings: "ExporterSettings", service_name: str) -> Resource:
    """Describe the exporter and the node it watches."""
    return Resource.create(
        {
            "service.name": service_name,
            "service.version": __version__,
            "linkpulse.node_url": settings.node_url,
            "linkpulse.measurement": settings.measurement,
            "linkpulse.extended_metrics": settings.extended_metrics_enabled,
        }
    )


def build_tracer_provider(settings: "ExporterSettings", service_name: str) -> TracerProvider:
    """Sampled provider that ships spans over OTLP when an endpoint is configured.

    Without an endpoint spans are still created, so ids propagate to the
    node, but nothing is exported.
    """
    ratio = max(0.0, min(1.0, settings.otel_sampler_ratio))
    provider = TracerProvider(
        resource=tracing_resource(settings, service_name),
        sampler=ParentBased(TraceIdRatioBased(ratio)),
    )
    if settings.otel_exporter_endpoint:
        exporter = OTLPSpanExporter(
            endpoint=settings.otel_exporter_endpoint,
            headers=parse_otlp_headers(settings.otel_exporter_headers),
        )
        provider.add_span_processor(BatchSpanProcessor(exporter))
    return provider


def configure_tracing(settings: "ExporterSettings", service_name: str) -> None:
    """Install the process tracer provider once and trace outbound node requests."""

    global _tracer_configured, _httpx_instrumented
    if not _tracer_configured:
        # an already installed SDK provider (auto-instrumentation) wins
        if not isinstance(trace.get_tracer_provider(), TracerProvider):
            trace.set_tracer_provider(build_tracer_provider(settings, service_name))
        _tracer_configured = True

    if not _httpx_instrumented:
        HTTPXClientInstrumentor().instrument()
        _httpx_instrumented = True


def instrument_fastapi_app(app: FastAPI) -> None:
    FastAPIInstrumentor.instrument_app(app, excluded_urls=UNTRACED_URLS)

"""OpenTelemetry tracing setup (OTLP over HTTP)."""

import logging

from mailsync.config import (
    DEPLOYMENT_ENVIRONMENT,
    OTLP_ENDPOINT,
    OTLP_HEADERS_AUTHORIZATION,
    SERVICE_NAME,
    TRACING_ENABLED,
)

logger = logging.getLogger(__name__)
_initialized = False
_tracer_provider = None

TRACER_NAME = "mailsync"
TRACER_VERSION = "0.1.0"


def _resolve_endpoint() -> str:
    """Ensure HTTP endpoint includes /v1/traces path (OTLP/HTTP convention)."""
    endpoint = OTLP_ENDPOINT.rstrip("/")
    if not endpoint.endswith("/v1/traces"):
        endpoint = f"{endpoint}/v1/traces"
    return endpoint


def _build_resource():
    """Build Resource with service identity."""
    from opentelemetry.sdk.resources import Resource

    return Resource.create(
        {
            "service.name": SERVICE_NAME,
            "service.version": TRACER_VERSION,
            "deployment.environment": DEPLOYMENT_ENVIRONMENT,
        }
    )


def _build_pipeline():
    """Build a TracerProvider that batches spans to the OTLP/HTTP exporter."""
    from opentelemetry import trace
    from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import BatchSpanProcessor

    headers = None
    if OTLP_HEADERS_AUTHORIZATION:
        headers = {"authorization": OTLP_HEADERS_AUTHORIZATION}

    provider = TracerProvider(resource=_build_resource())
    exporter = OTLPSpanExporter(endpoint=_resolve_endpoint(), headers=headers)
    provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)
    return provider


def init_tracing() -> None:
    """Initialize OTLP tracing (call once at startup). No-op unless TRACING_ENABLED."""
    global _initialized, _tracer_provider
    if _initialized or not TRACING_ENABLED:
        return

    _tracer_provider = _build_pipeline()
    _initialized = True
    logger.info("Tracing enabled, exporting to %s", _resolve_endpoint())


def get_tracer():
    """Return the OpenTelemetry tracer (no-op tracer until init_tracing has run)."""
    from opentelemetry import trace

    return trace.get_tracer(TRACER_NAME, TRACER_VERSION)


def get_tracer_provider():
    """Return the global tracer provider (for shutdown)."""
    from opentelemetry import trace

    return _tracer_provider if _tracer_provider is not None else trace.get_tracer_provider()


def shutdown_tracing() -> None:
    """Flush and shutdown the tracer provider so spans are exported before process exit."""
    from opentelemetry.sdk.trace import TracerProvider

    provider = get_tracer_provider()
    if isinstance(provider, TracerProvider):
        provider.force_flush(timeout_millis=5000)
        provider.shutdown()


def mark_span_failed(span, error: BaseException) -> None:
    """Set ERROR status on the span and attach the exception event."""
    from opentelemetry.trace import Status, StatusCode

    span.set_status(Status(StatusCode.ERROR, str(error)))
    span.record_exception(error)

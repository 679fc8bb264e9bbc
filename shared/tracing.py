"""OpenTelemetry tracing for the Confidential Eligibility layer."""

import os
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.trace import Span, Status, StatusCode

TRACER_NAME = "confidential-eligibility"

_configured = False


def _otlp_headers() -> Dict[str, str]:
    """Parse ``OTEL_EXPORTER_OTLP_HEADERS`` (``k1=v1,k2=v2``)."""
    headers: Dict[str, str] = {}
    for segment in os.getenv("OTEL_EXPORTER_OTLP_HEADERS", "").split(","):
        key, sep, value = segment.partition("=")
        if sep and key.strip():
            headers[key.strip()] = value.strip()
    return headers


def _otlp_exporter(endpoint: str) -> OTLPSpanExporter:
    kwargs: Dict[str, Any] = {"endpoint": endpoint, "insecure": endpoint.startswith("http://")}
    headers = _otlp_headers()
    if headers:
        kwargs["headers"] = headers
    return OTLPSpanExporter(**kwargs)


def configure_tracing(service_name: str, otel_exporter: Optional[str] = None, enable_console: bool = False) -> None:
    """Install the global tracer provider.

    The provider can only be installed once per process; later calls are
    ignored.
    """
    global _configured
    if _configured:
        return

    provider = TracerProvider(resource=Resource.create({
        "service.name": service_name,
        "service.version": "1.0.0",
        "service.namespace": TRACER_NAME,
        "deployment.environment": os.getenv("ELIGIBILITY_ENV", "local"),
    }))

    endpoint = otel_exporter or os.getenv("OTEL_EXPORTER_OTLP_TRACES_ENDPOINT") or os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
    if endpoint:
        provider.add_span_processor(BatchSpanProcessor(_otlp_exporter(endpoint)))
    if enable_console:
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(provider)
    _configured = True


@contextmanager
def trace_operation(operation_name: str, **attributes) -> Iterator[Span]:
    """Run the block in a span; failures mark the span as errored and propagate."""
    tracer = trace.get_tracer(TRACER_NAME)
    with tracer.start_as_current_span(operation_name, record_exception=False) as span:
        span.set_attributes({key: value for key, value in attributes.items() if value is not None})
        try:
            yield span
        except Exception as exc:
            span.set_status(Status(StatusCode.ERROR, str(exc)))
            span.set_attribute("error.type", type(exc).__name__)
            raise

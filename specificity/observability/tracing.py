"""
OpenTelemetry Tracing Module

Tracing setup plus the breadcrumb-style event helpers used by the query
metrics sink. A breadcrumb becomes an event on the current span, so slow
queries and backend errors show up inline in the trace of the request that
issued them. With no active span the events are dropped by OpenTelemetry's
non-recording span.

Reference Documents:
- GUIDELINES pp. 2309-2319: "observability framework encompassing metrics collection,
  logging strategies, and cost tracking"

Anti-Pattern §1.1 Avoided: Uses Optional[T] with explicit None defaults
"""

from contextlib import contextmanager
from typing import Any, Generator, Optional

from opentelemetry import trace
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.trace import Span, Tracer

_tracer_provider: Optional[TracerProvider] = None

BREADCRUMB_EVENT = "breadcrumb"


# =============================================================================
# TracerProvider Configuration
# =============================================================================


def setup_tracing(
    service_name: str = "specificity-core",
    otlp_endpoint: Optional[str] = None,
) -> TracerProvider:
    """
    Configure the global OpenTelemetry TracerProvider.

    Args:
        service_name: Name of the service for resource identification
        otlp_endpoint: Optional OTLP exporter endpoint (http://localhost:4317)

    Returns:
        Configured TracerProvider
    """
    global _tracer_provider

    resource = Resource.create({SERVICE_NAME: service_name})
    provider = TracerProvider(resource=resource)

    if otlp_endpoint:
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
            OTLPSpanExporter,
        )

        exporter = OTLPSpanExporter(endpoint=otlp_endpoint)
    else:
        exporter = ConsoleSpanExporter()

    provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)
    _tracer_provider = provider

    return provider


def get_tracer(name: str = __name__) -> Tracer:
    """Get a named tracer instance."""
    return trace.get_tracer(name)


def get_current_trace_id() -> Optional[str]:
    """
    Get the current trace ID as hex string.

    Returns:
        32-character hex string or None if no active span
    """
    span_context = trace.get_current_span().get_span_context()
    if span_context.trace_id == 0:
        return None
    return format(span_context.trace_id, "032x")


# =============================================================================
# Breadcrumbs
# =============================================================================


def add_breadcrumb(
    category: str,
    message: str,
    level: str = "info",
    data: Optional[dict[str, Any]] = None,
) -> None:
    """
    Attach a breadcrumb event to the current span.

    Args:
        category: Event category (e.g., "database")
        message: Human-readable description
        level: Severity ("info", "warning", "error")
        data: Extra attributes; None values are omitted
    """
    attributes: dict[str, Any] = {
        "breadcrumb.category": category,
        "breadcrumb.message": message,
        "breadcrumb.level": level,
    }
    for key, value in (data or {}).items():
        if value is not None:
            attributes[f"breadcrumb.data.{key}"] = value
    trace.get_current_span().add_event(BREADCRUMB_EVENT, attributes=attributes)


def record_error(error: BaseException, attributes: Optional[dict[str, Any]] = None) -> None:
    """Record an exception on the current span."""
    trace.get_current_span().record_exception(error, attributes=attributes)


@contextmanager
def create_span(
    name: str,
    attributes: Optional[dict[str, Any]] = None,
) -> Generator[Span, None, None]:
    """
    Context manager for creating a span.

    Args:
        name: Span name
        attributes: Optional span attributes

    Yields:
        Active span
    """
    tracer = get_tracer()
    with tracer.start_as_current_span(name) as span:
        if attributes:
            for key, value in attributes.items():
                span.set_attribute(key, value)
        yield span

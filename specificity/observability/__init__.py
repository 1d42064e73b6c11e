"""
Observability Package

This package provides observability infrastructure including:
- Structured JSON logging (structlog)
- Prometheus metrics for backend queries
- OpenTelemetry tracing and breadcrumb events

Reference Documents:
- GUIDELINES pp. 2309-2319: Observability = metrics + logging + cost tracking
"""

from specificity.observability.logging import (
    clear_correlation_id,
    configure_logging,
    correlation_id_context,
    get_correlation_id,
    get_logger,
    set_correlation_id,
)
from specificity.observability.metrics import (
    generate_metrics,
    record_query_duration,
    record_query_error,
)
from specificity.observability.tracing import (
    add_breadcrumb,
    create_span,
    get_current_trace_id,
    get_tracer,
    record_error,
    setup_tracing,
)

__all__ = [
    # Logging
    "configure_logging",
    "get_logger",
    "set_correlation_id",
    "get_correlation_id",
    "clear_correlation_id",
    "correlation_id_context",
    # Metrics
    "generate_metrics",
    "record_query_duration",
    "record_query_error",
    # Tracing
    "setup_tracing",
    "get_tracer",
    "get_current_trace_id",
    "create_span",
    "add_breadcrumb",
    "record_error",
]

"""
Prometheus Metrics Module - Backend Query Metrics

Process-wide Prometheus series for backend (database) calls. The rolling
in-memory statistics live in specificity.database.query_metrics; these series
are the long-lived export consumed by dashboards and alerting.

Reference Documents:
- GUIDELINES pp. 2309-2319: "Prometheus for metrics collection and structured logging"
- Newman (Building Microservices pp. 273-275): Services "expose basic metrics
  themselves" including "response times and error rates"

Anti-Pattern Compliance:
- AP-1: Metric names as constants
"""

from prometheus_client import REGISTRY, Counter, Histogram, generate_latest


# =============================================================================
# Constants (AP-1 Compliance: No duplicated string literals)
# =============================================================================

METRIC_QUERY_DURATION = "specificity_query_duration_seconds"
METRIC_QUERY_ERRORS = "specificity_query_errors"


# =============================================================================
# Query Metrics
# =============================================================================

QUERY_DURATION_SECONDS = Histogram(
    name=METRIC_QUERY_DURATION,
    documentation="Backend query duration in seconds",
    labelnames=["resource"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 3.0, 5.0, 10.0),
)

QUERY_ERRORS_TOTAL = Counter(
    name=METRIC_QUERY_ERRORS,
    documentation="Total number of backend queries that returned an error",
    labelnames=["resource"],
)


def record_query_duration(resource: str, duration_ms: float) -> None:
    """
    Record a backend query duration.

    Args:
        resource: Table or endpoint name
        duration_ms: Duration in milliseconds
    """
    QUERY_DURATION_SECONDS.labels(resource=resource).observe(duration_ms / 1000.0)


def record_query_error(resource: str) -> None:
    """Count a backend query that returned an error."""
    QUERY_ERRORS_TOTAL.labels(resource=resource).inc()


# =============================================================================
# Metrics Endpoint
# =============================================================================


def generate_metrics() -> str:
    """
    Generate Prometheus metrics text format.

    Returns:
        Prometheus exposition format text
    """
    return generate_latest(REGISTRY).decode("utf-8")

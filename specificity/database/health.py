"""
Database Health Report

Connection probe plus a report combining the probe with the rolling query
statistics and plain-language recommendations for operators.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List

from specificity.database.query_metrics import AllMetrics, QueryMetricsStore, QueryResult
from specificity.observability.logging import get_logger

logger = get_logger(__name__)

# PostgREST "no rows returned" is a successful round trip.
NO_ROWS_ERROR_CODE = "PGRST116"
MIN_RESOURCE_SUCCESS_RATE = 0.99

Probe = Callable[[], Awaitable[QueryResult[Any]]]


@dataclass(frozen=True)
class DatabaseHealth:
    """Result of a connection probe."""

    connected: bool
    latency_ms: float
    timestamp: float


@dataclass(frozen=True)
class HealthReport:
    """Probe result, current metrics and recommendations."""

    health: DatabaseHealth
    metrics: AllMetrics
    recommendations: List[str] = field(default_factory=list)


async def check_database_health(
    probe: Probe,
    timer: Callable[[], float] = time.perf_counter,
    clock: Callable[[], float] = time.time,
) -> DatabaseHealth:
    """
    Time a lightweight probe query.

    The probe counts as connected when it returns no error or the
    "no rows" error. A probe that raises is reported as disconnected.

    Args:
        probe: Async callable issuing a minimal query
        timer: Monotonic timer (seconds)
        clock: Wall clock for the report timestamp (seconds)

    Returns:
        DatabaseHealth
    """
    start = timer()
    try:
        result = await probe()
    except Exception as e:
        logger.warning("database_probe_failed", error=str(e))
        return DatabaseHealth(
            connected=False,
            latency_ms=(timer() - start) * 1000.0,
            timestamp=clock(),
        )

    error_code = getattr(result.error, "code", None)
    return DatabaseHealth(
        connected=result.error is None or error_code == NO_ROWS_ERROR_CODE,
        latency_ms=(timer() - start) * 1000.0,
        timestamp=clock(),
    )


def build_recommendations(
    health: DatabaseHealth,
    metrics: AllMetrics,
    slow_threshold_ms: float,
) -> List[str]:
    """Recommendations for the conditions an operator should act on."""
    recommendations: List[str] = []

    if not health.connected:
        recommendations.append(
            "Database connection failed. Check backend status and credentials."
        )

    if health.latency_ms > slow_threshold_ms:
        recommendations.append(
            f"Database latency is high ({health.latency_ms:.0f}ms). "
            "Consider connection pooling."
        )

    if metrics.slow_sample_count > 0:
        recommendations.append(
            f"{metrics.slow_sample_count} slow queries detected. "
            "Review query patterns and indices."
        )

    for resource, resource_metrics in metrics.resources.items():
        if resource_metrics.success_rate < MIN_RESOURCE_SUCCESS_RATE:
            error_pct = (1 - resource_metrics.success_rate) * 100
            recommendations.append(f"Resource '{resource}' has {error_pct:.1f}% error rate.")
        if resource_metrics.p95_duration > slow_threshold_ms:
            recommendations.append(
                f"Resource '{resource}' P95 latency is "
                f"{resource_metrics.p95_duration:.0f}ms. Consider adding indices."
            )

    return recommendations


async def generate_health_report(store: QueryMetricsStore, probe: Probe) -> HealthReport:
    """
    Probe the database and combine the result with current query metrics.

    Args:
        store: Query metrics store to summarize
        probe: Async callable issuing a minimal query

    Returns:
        HealthReport
    """
    health = await check_database_health(probe)
    metrics = store.get_all_metrics()
    return HealthReport(
        health=health,
        metrics=metrics,
        recommendations=build_recommendations(health, metrics, store.slow_threshold_ms),
    )

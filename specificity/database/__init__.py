"""
Database observability for the Specificity resilience core.

- QueryMetricsStore: Timed wrapper and rolling sample statistics
- Health report: Connection probe and operator recommendations
"""

from specificity.database.health import (
    DatabaseHealth,
    HealthReport,
    build_recommendations,
    check_database_health,
    generate_health_report,
)
from specificity.database.query_metrics import (
    QUERY_THRESHOLDS_MS,
    AllMetrics,
    MetricsSink,
    ObservabilitySink,
    PerformanceClass,
    QueryMetricsStore,
    QueryResult,
    QuerySample,
    ResourceMetrics,
    classify_query_performance,
    percentile,
)

__all__ = [
    # Query metrics
    "QueryMetricsStore",
    "QueryResult",
    "QuerySample",
    "ResourceMetrics",
    "AllMetrics",
    "MetricsSink",
    "ObservabilitySink",
    "PerformanceClass",
    "QUERY_THRESHOLDS_MS",
    "classify_query_performance",
    "percentile",
    # Health
    "DatabaseHealth",
    "HealthReport",
    "check_database_health",
    "build_recommendations",
    "generate_health_report",
]

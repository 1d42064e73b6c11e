"""
Query Metrics Recorder

Times backend (database) calls and keeps a rolling, time-windowed set of
samples from which per-resource statistics are computed.

The recorder only observes: track() returns exactly what the wrapped call
returned and never retries, swallows, or rewrites errors. Samples are evicted
purely by age, lazily on every write and read path; there is no background
sweep.

Reference Documents:
- Newman (Building Microservices pp. 273-275): "response times and error rates"
- GUIDELINES pp. 2309-2319: Prometheus for metrics collection

Performance Classes (milliseconds):
    fast <= 100 < normal <= 500 < slow <= 1000 < critical
"""

import bisect
import math
import time
from dataclasses import dataclass
from enum import Enum
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Generic,
    List,
    Optional,
    Protocol,
    TypeVar,
)

from specificity.core.aggregates import safe_ratio
from specificity.observability import metrics as prom
from specificity.observability import tracing
from specificity.observability.logging import get_logger

T = TypeVar("T")

logger = get_logger(__name__)


# =============================================================================
# Constants
# =============================================================================

DEFAULT_RETENTION_SECONDS = 300.0
P95_QUANTILE = 0.95
BREADCRUMB_CATEGORY = "database"

QUERY_THRESHOLDS_MS = {
    "fast": 100.0,
    "normal": 500.0,
    "slow": 1000.0,
    "critical": 3000.0,
}


class PerformanceClass(str, Enum):
    """Duration bucket of a single query."""

    FAST = "fast"
    NORMAL = "normal"
    SLOW = "slow"
    CRITICAL = "critical"


def classify_query_performance(duration_ms: float) -> PerformanceClass:
    """Bucket a query duration."""
    if duration_ms <= QUERY_THRESHOLDS_MS["fast"]:
        return PerformanceClass.FAST
    if duration_ms <= QUERY_THRESHOLDS_MS["normal"]:
        return PerformanceClass.NORMAL
    if duration_ms <= QUERY_THRESHOLDS_MS["slow"]:
        return PerformanceClass.SLOW
    return PerformanceClass.CRITICAL


# =============================================================================
# Data Types
# =============================================================================


@dataclass
class QueryResult(Generic[T]):
    """
    Result of a backend call.

    Attributes:
        data: Returned rows or payload
        error: Backend error object; present means the call failed
        count: Optional row count reported by the backend
    """

    data: Optional[T] = None
    error: Optional[Any] = None
    count: Optional[int] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class QuerySample:
    """One observed backend call."""

    resource: str
    duration_ms: float
    timestamp: float
    succeeded: bool
    row_count: Optional[int] = None


@dataclass(frozen=True)
class ResourceMetrics:
    """Aggregate statistics for one resource."""

    avg_duration: float = 0.0
    p95_duration: float = 0.0
    success_rate: float = 1.0
    sample_count: int = 0


@dataclass(frozen=True)
class AllMetrics:
    """Aggregate statistics across every resource seen."""

    resources: Dict[str, ResourceMetrics]
    total_samples: int
    overall_success_rate: float
    slow_sample_count: int


def percentile(sorted_values: List[float], quantile: float) -> float:
    """
    Nearest-rank percentile of an ascending list.

    Index is floor(n * quantile) clamped to n - 1; 0.0 for an empty list.
    """
    if not sorted_values:
        return 0.0
    index = min(math.floor(len(sorted_values) * quantile), len(sorted_values) - 1)
    return sorted_values[index]


def summarize(samples: List[QuerySample]) -> ResourceMetrics:
    """Compute ResourceMetrics over samples; neutral values when empty."""
    if not samples:
        return ResourceMetrics()

    durations = sorted(s.duration_ms for s in samples)
    success_count = sum(1 for s in samples if s.succeeded)
    return ResourceMetrics(
        avg_duration=sum(durations) / len(durations),
        p95_duration=percentile(durations, P95_QUANTILE),
        success_rate=safe_ratio(success_count, len(samples), default=1.0),
        sample_count=len(samples),
    )


# =============================================================================
# Observability Sink
# =============================================================================


class MetricsSink(Protocol):
    """Receives measurements and events produced by QueryMetricsStore."""

    def record_duration(self, resource: str, duration_ms: float) -> None:
        ...

    def add_breadcrumb(
        self,
        category: str,
        message: str,
        level: str,
        data: Dict[str, Any],
    ) -> None:
        ...

    def capture_error(self, resource: str, error: Any, duration_ms: float) -> None:
        ...


class ObservabilitySink:
    """
    Default sink: Prometheus series, OpenTelemetry span events, structlog.
    """

    def record_duration(self, resource: str, duration_ms: float) -> None:
        prom.record_query_duration(resource, duration_ms)

    def add_breadcrumb(
        self,
        category: str,
        message: str,
        level: str,
        data: Dict[str, Any],
    ) -> None:
        tracing.add_breadcrumb(category, message, level=level, data=data)
        log = logger.warning if level == "warning" else logger.info
        log("query_breadcrumb", category=category, message=message, **data)

    def capture_error(self, resource: str, error: Any, duration_ms: float) -> None:
        prom.record_query_error(resource)
        if isinstance(error, BaseException):
            tracing.record_error(error, attributes={"resource": resource})
        logger.error(
            "query_failed",
            resource=resource,
            duration_ms=round(duration_ms, 2),
            error=str(error),
        )


# =============================================================================
# Query Metrics Store
# =============================================================================


class QueryMetricsStore:
    """
    Rolling, time-windowed store of backend call samples.

    Samples are kept ordered by call-start time. Every write and read first
    drops samples older than retention_seconds.

    Example:
        >>> store = QueryMetricsStore(retention_seconds=300)
        >>> result = await store.track("specifications", lambda: fetch_specs(user_id))
        >>> store.get_resource_metrics("specifications").p95_duration
    """

    def __init__(
        self,
        retention_seconds: float = DEFAULT_RETENTION_SECONDS,
        slow_threshold_ms: float = QUERY_THRESHOLDS_MS["slow"],
        critical_threshold_ms: float = QUERY_THRESHOLDS_MS["critical"],
        sink: Optional[MetricsSink] = None,
        clock: Callable[[], float] = time.time,
        timer: Callable[[], float] = time.perf_counter,
    ) -> None:
        """
        Initialize QueryMetricsStore.

        Args:
            retention_seconds: Age after which samples are evicted
            slow_threshold_ms: Durations above this count as slow
            critical_threshold_ms: Slow breadcrumbs above this are warnings
            sink: Observability sink (default: ObservabilitySink)
            clock: Wall-clock source for sample timestamps (seconds)
            timer: Monotonic timer for durations (seconds)
        """
        self._retention_seconds = retention_seconds
        self._slow_threshold_ms = slow_threshold_ms
        self._critical_threshold_ms = critical_threshold_ms
        self._sink: MetricsSink = sink if sink is not None else ObservabilitySink()
        self._clock = clock
        self._timer = timer
        self._samples: List[QuerySample] = []

    @property
    def retention_seconds(self) -> float:
        return self._retention_seconds

    @property
    def slow_threshold_ms(self) -> float:
        return self._slow_threshold_ms

    # =========================================================================
    # Recording
    # =========================================================================

    async def track(
        self,
        resource: str,
        operation: Callable[[], Awaitable[QueryResult[T]]],
    ) -> QueryResult[T]:
        """
        Execute a backend call, timing it and recording a sample.

        Args:
            resource: Table or endpoint name
            operation: Zero-argument async callable returning a QueryResult

        Returns:
            The operation's result, unchanged

        Raises:
            Exception: Anything the operation raises; no sample is recorded
        """
        started_at = self._clock()
        start = self._timer()

        result = await operation()

        duration_ms = (self._timer() - start) * 1000.0
        sample = QuerySample(
            resource=resource,
            duration_ms=duration_ms,
            timestamp=started_at,
            succeeded=result.succeeded,
            row_count=result.count,
        )
        self.record_sample(sample)
        self._emit(sample, result)
        return result

    def record_sample(self, sample: QuerySample) -> None:
        """Insert a sample in timestamp order and evict expired samples."""
        if self._samples and sample.timestamp < self._samples[-1].timestamp:
            bisect.insort(self._samples, sample, key=lambda s: s.timestamp)
        else:
            self._samples.append(sample)
        self._evict()

    def _emit(self, sample: QuerySample, result: QueryResult[Any]) -> None:
        self._sink.record_duration(sample.resource, sample.duration_ms)

        if sample.duration_ms > self._slow_threshold_ms:
            level = "warning" if sample.duration_ms > self._critical_threshold_ms else "info"
            self._sink.add_breadcrumb(
                BREADCRUMB_CATEGORY,
                f"Slow query on {sample.resource}: {sample.duration_ms:.0f}ms",
                level,
                {
                    "resource": sample.resource,
                    "duration_ms": sample.duration_ms,
                    "row_count": sample.row_count,
                },
            )

        if not sample.succeeded:
            self._sink.capture_error(sample.resource, result.error, sample.duration_ms)

    def _evict(self) -> None:
        cutoff = self._clock() - self._retention_seconds
        index = bisect.bisect_left(self._samples, cutoff, key=lambda s: s.timestamp)
        if index:
            del self._samples[:index]

    # =========================================================================
    # Reads
    # =========================================================================

    def samples(self, resource: Optional[str] = None) -> List[QuerySample]:
        """Current samples, oldest first, optionally for one resource."""
        self._evict()
        if resource is None:
            return list(self._samples)
        return [s for s in self._samples if s.resource == resource]

    def get_resource_metrics(self, resource: str) -> ResourceMetrics:
        """
        Statistics over current samples for a resource.

        Returns avg 0, p95 0, success rate 1.0, count 0 when there are none.
        """
        return summarize(self.samples(resource))

    def get_all_metrics(self) -> AllMetrics:
        """Statistics per resource plus totals and the slow sample count."""
        samples = self.samples()

        by_resource: Dict[str, List[QuerySample]] = {}
        for sample in samples:
            by_resource.setdefault(sample.resource, []).append(sample)

        success_count = sum(1 for s in samples if s.succeeded)
        return AllMetrics(
            resources={name: summarize(group) for name, group in by_resource.items()},
            total_samples=len(samples),
            overall_success_rate=safe_ratio(success_count, len(samples), default=1.0),
            slow_sample_count=sum(
                1 for s in samples if s.duration_ms > self._slow_threshold_ms
            ),
        )

    def reset(self) -> None:
        """Drop every sample (test isolation)."""
        self._samples.clear()

"""
Pytest configuration for the Specificity core test suite.

Reference Documents:
- GUIDELINES pp. 155-157: "high and low gear" testing philosophy
- GUIDELINES pp. 157: FakeRepository pattern using duck typing

This configuration sets up:
- Test markers for categorization
- Controllable clocks so cooldown and retention tests never sleep
- Tracker, selector, failover client and query metrics fixtures
- A FastAPI test client whose components are placed directly on app.state
"""

import os
from typing import Any, Optional
from unittest.mock import patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from specificity.core.config import FailoverConfig, get_settings
from specificity.database.query_metrics import QueryMetricsStore
from specificity.resilience.failover import (
    DEFAULT_PROVIDERS,
    FailoverClient,
    FailoverSelector,
)
from specificity.resilience.health_tracker import ProviderHealthTracker
from specificity.resilience.retry import RetryPolicy


# =============================================================================
# Test Markers
# =============================================================================


def pytest_configure(config):
    """
    Register custom markers for test categorization.

    - unit: Low gear tests for individual components
    - integration: High gear tests through the HTTP surface
    """
    config.addinivalue_line("markers", "unit: Unit tests for individual components")
    config.addinivalue_line("markers", "integration: Integration tests for service interactions")


# =============================================================================
# Fakes
# =============================================================================


class FakeClock:
    """Manually advanced time source (seconds)."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSink:
    """MetricsSink that keeps everything it receives."""

    def __init__(self) -> None:
        self.durations: list[tuple[str, float]] = []
        self.breadcrumbs: list[dict[str, Any]] = []
        self.errors: list[tuple[str, Any, float]] = []

    def record_duration(self, resource: str, duration_ms: float) -> None:
        self.durations.append((resource, duration_ms))

    def add_breadcrumb(
        self, category: str, message: str, level: str, data: dict[str, Any]
    ) -> None:
        self.breadcrumbs.append(
            {"category": category, "message": message, "level": level, "data": data}
        )

    def capture_error(self, resource: str, error: Any, duration_ms: float) -> None:
        self.errors.append((resource, error, duration_ms))


async def no_sleep(_delay: float) -> None:
    """Awaitable sleep replacement that returns immediately."""
    return None


# =============================================================================
# Resilience Fixtures
# =============================================================================


@pytest.fixture
def clock() -> FakeClock:
    """Fake monotonic clock for the health tracker."""
    return FakeClock()


@pytest.fixture
def failover_config() -> FailoverConfig:
    """Production-like thresholds: 3 failures, 60s cooldown, 300s window."""
    return FailoverConfig(max_failures=3, cooldown_seconds=60.0, failure_window_seconds=300.0)


@pytest.fixture
def tracker(failover_config: FailoverConfig, clock: FakeClock) -> ProviderHealthTracker:
    """Tracker with the default providers registered."""
    return ProviderHealthTracker(
        failover_config, [p.name for p in DEFAULT_PROVIDERS], clock=clock
    )


@pytest.fixture
def selector(tracker: ProviderHealthTracker) -> FailoverSelector:
    return FailoverSelector(tracker, DEFAULT_PROVIDERS)


@pytest.fixture
def fast_retry_policy() -> RetryPolicy:
    """One retry, no jitter."""
    return RetryPolicy(max_retries=1, initial_delay_seconds=0.01, jitter=False)


@pytest.fixture
def failover_client(
    selector: FailoverSelector,
    failover_config: FailoverConfig,
    fast_retry_policy: RetryPolicy,
) -> FailoverClient:
    """Failover client that never actually sleeps between retries."""
    return FailoverClient(selector, failover_config, fast_retry_policy, sleep=no_sleep)


# =============================================================================
# Query Metrics Fixtures
# =============================================================================


@pytest.fixture
def wall_clock() -> FakeClock:
    """Fake wall clock for sample timestamps."""
    return FakeClock(start=1_700_000_000.0)


@pytest.fixture
def timer() -> FakeClock:
    """Fake perf counter; tests advance it inside tracked operations."""
    return FakeClock(start=0.0)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def store(wall_clock: FakeClock, timer: FakeClock, sink: RecordingSink) -> QueryMetricsStore:
    """Store with 300s retention, 1000ms slow and 3000ms critical thresholds."""
    return QueryMetricsStore(
        retention_seconds=300.0,
        slow_threshold_ms=1000.0,
        critical_threshold_ms=3000.0,
        sink=sink,
        clock=wall_clock,
        timer=timer,
    )


# =============================================================================
# Settings Fixtures
# =============================================================================


@pytest.fixture
def clean_settings():
    """Clear the settings cache before and after the test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def mock_env_vars(clean_settings):
    """Patch SPECIFICITY_ environment variables for the duration of a test."""
    test_vars = {
        "SPECIFICITY_ENVIRONMENT": "production",
        "SPECIFICITY_LOG_LEVEL": "debug",
        "SPECIFICITY_FAILOVER_MAX_FAILURES": "5",
    }
    with patch.dict(os.environ, test_vars):
        yield test_vars


# =============================================================================
# Test Client Fixtures
# =============================================================================


def build_test_app(
    tracker: ProviderHealthTracker,
    failover_client: FailoverClient,
    store: QueryMetricsStore,
    probe: Optional[Any] = None,
) -> FastAPI:
    """Health router mounted on a bare app with components on app.state."""
    from specificity.api.routes.health import router as health_router

    app = FastAPI(title="Test App")
    app.include_router(health_router)
    app.state.health_tracker = tracker
    app.state.failover_client = failover_client
    app.state.query_metrics = store
    if probe is not None:
        app.state.database_probe = probe
    return app


@pytest.fixture
def app(
    tracker: ProviderHealthTracker,
    failover_client: FailoverClient,
    store: QueryMetricsStore,
) -> FastAPI:
    return build_test_app(tracker, failover_client, store)


@pytest.fixture
def client_with_probe(
    tracker: ProviderHealthTracker,
    failover_client: FailoverClient,
    store: QueryMetricsStore,
):
    """Factory: test client whose app has the given database probe registered."""

    def _make(probe: Any) -> TestClient:
        return TestClient(build_test_app(tracker, failover_client, store, probe))

    return _make


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    """
    Synchronous test client for the health router.

    Reference: GUIDELINES pp. 155-157 - Service-layer tests
    """
    return TestClient(app)


@pytest.fixture
def full_app_client():
    """
    Test client for the real application, lifespan included.

    Returns:
        TestClient: Entered as a context manager so startup runs
    """
    from specificity.main import app

    with TestClient(app) as test_client:
        yield test_client

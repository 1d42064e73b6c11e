"""
Health Router - Provider and Query Health Endpoints

Liveness, readiness, provider failover state, rolling query statistics and
the Prometheus scrape endpoint.

Reference Documents:
- Building Microservices (Newman) pp. 273-275: Service metrics and synthetic monitoring
- Building Python Microservices with FastAPI (Sinha) pp. 89-91: Dependency injection patterns

Anti-Patterns Avoided:
- ANTI_PATTERN_ANALYSIS §3.1: No bare except clauses - exceptions logged with context
- ANTI_PATTERN_ANALYSIS §5.1: No unused parameters
"""

import logging
from dataclasses import asdict
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Response, status
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from specificity.api.deps import (
    get_database_probe,
    get_failover_client,
    get_health_tracker,
    get_query_metrics,
    get_settings,
)
from specificity.core.config import Settings
from specificity.core.exceptions import AllProvidersDownError
from specificity.database.health import Probe, check_database_health, generate_health_report
from specificity.database.query_metrics import AllMetrics, QueryMetricsStore, ResourceMetrics
from specificity.observability.metrics import generate_metrics
from specificity.resilience.failover import FailoverClient
from specificity.resilience.health_tracker import ProviderHealthTracker, ProviderStats

logger = logging.getLogger(__name__)


# =============================================================================
# Response Models - Following Pydantic patterns (Sinha pp. 193-195)
# =============================================================================


class HealthResponse(BaseModel):
    """Liveness response model."""

    status: str
    service: str
    version: str


class ReadinessResponse(BaseModel):
    """Readiness check response model."""

    status: str
    checks: dict[str, bool]


class ProviderStatsResponse(BaseModel):
    """Monitoring view of one provider."""

    name: str
    health: str
    circuit_state: str
    success_rate: float
    consecutive_failures: int
    is_available: bool

    @classmethod
    def from_stats(cls, stats: ProviderStats) -> "ProviderStatsResponse":
        return cls(
            name=stats.provider_id,
            health=stats.health.value,
            circuit_state=stats.circuit_state.value,
            success_rate=stats.success_rate,
            consecutive_failures=stats.consecutive_failures,
            is_available=stats.is_available,
        )


class ProvidersResponse(BaseModel):
    """Failover state across providers."""

    current_provider: Optional[str]
    providers: list[ProviderStatsResponse]
    is_healthy: bool
    has_active_circuit: bool


class ResourceMetricsResponse(BaseModel):
    """Rolling statistics for one resource."""

    avg_duration: float
    p95_duration: float
    success_rate: float
    sample_count: int

    @classmethod
    def from_metrics(cls, metrics: ResourceMetrics) -> "ResourceMetricsResponse":
        return cls(**asdict(metrics))


class QueryMetricsResponse(BaseModel):
    """Rolling statistics across resources."""

    resources: dict[str, ResourceMetricsResponse]
    total_samples: int
    overall_success_rate: float
    slow_sample_count: int


class DatabaseReportResponse(BaseModel):
    """Database probe, metrics and recommendations."""

    connected: bool
    latency_ms: float
    metrics: QueryMetricsResponse
    recommendations: list[str]


def _query_metrics_response(all_metrics: AllMetrics) -> QueryMetricsResponse:
    return QueryMetricsResponse(
        resources={
            name: ResourceMetricsResponse.from_metrics(metrics)
            for name, metrics in all_metrics.resources.items()
        },
        total_samples=all_metrics.total_samples,
        overall_success_rate=all_metrics.overall_success_rate,
        slow_sample_count=all_metrics.slow_sample_count,
    )


# =============================================================================
# Router
# =============================================================================

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(settings: Settings = Depends(get_settings)) -> HealthResponse:
    """Liveness endpoint."""
    return HealthResponse(
        status="healthy",
        service=settings.service_name,
        version=settings.version,
    )


@router.get("/health/ready", response_model=ReadinessResponse)
async def readiness_check(
    response: Response,
    client: FailoverClient = Depends(get_failover_client),
    probe: Optional[Probe] = Depends(get_database_probe),
) -> ReadinessResponse:
    """
    Readiness endpoint.

    Ready when the selector can pick an enabled, eligible provider and, if a
    database probe is registered, the database answers. Returns 503 otherwise.
    """
    try:
        client.selector.select_provider()
        providers_ready = True
    except AllProvidersDownError:
        providers_ready = False

    checks = {"providers": providers_ready}
    if probe is not None:
        checks["database"] = (await check_database_health(probe)).connected

    all_healthy = all(checks.values())
    if not all_healthy:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return ReadinessResponse(
        status="ready" if all_healthy else "not_ready",
        checks=checks,
    )


# =============================================================================
# Provider Endpoints
# =============================================================================


@router.get("/health/providers", response_model=ProvidersResponse)
async def provider_health(
    client: FailoverClient = Depends(get_failover_client),
) -> ProvidersResponse:
    """Provider health, circuit state and the provider currently in use."""
    stats: dict[str, Any] = client.get_stats()
    return ProvidersResponse(
        current_provider=stats["current_provider"],
        providers=[ProviderStatsResponse.from_stats(s) for s in stats["providers"]],
        is_healthy=stats["is_healthy"],
        has_active_circuit=stats["has_active_circuit"],
    )


@router.post("/health/providers/{provider_id}/reset", response_model=ProviderStatsResponse)
async def reset_provider(
    provider_id: str,
    tracker: ProviderHealthTracker = Depends(get_health_tracker),
) -> ProviderStatsResponse:
    """Manually clear a provider's failure streak and cooldown."""
    if not tracker.reset_provider(provider_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown provider: {provider_id}",
        )
    logger.info(f"Provider {provider_id} reset via API")
    return ProviderStatsResponse.from_stats(tracker.get_stats(provider_id))


# =============================================================================
# Query Metrics Endpoints
# =============================================================================


@router.get("/health/queries", response_model=QueryMetricsResponse)
async def query_metrics(
    store: QueryMetricsStore = Depends(get_query_metrics),
) -> QueryMetricsResponse:
    """Rolling query statistics across resources."""
    return _query_metrics_response(store.get_all_metrics())


@router.get("/health/queries/{resource}", response_model=ResourceMetricsResponse)
async def resource_query_metrics(
    resource: str,
    store: QueryMetricsStore = Depends(get_query_metrics),
) -> ResourceMetricsResponse:
    """Rolling query statistics for one resource (neutral when unseen)."""
    return ResourceMetricsResponse.from_metrics(store.get_resource_metrics(resource))


@router.get("/health/database", response_model=DatabaseReportResponse)
async def database_report(
    store: QueryMetricsStore = Depends(get_query_metrics),
    probe: Optional[Probe] = Depends(get_database_probe),
) -> DatabaseReportResponse:
    """Database probe, rolling metrics and recommendations."""
    if probe is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="No database probe configured",
        )

    report = await generate_health_report(store, probe)
    return DatabaseReportResponse(
        connected=report.health.connected,
        latency_ms=report.health.latency_ms,
        metrics=_query_metrics_response(report.metrics),
        recommendations=report.recommendations,
    )


# =============================================================================
# Metrics Endpoint
# =============================================================================


@router.get("/metrics")
async def metrics() -> PlainTextResponse:
    """Prometheus metrics endpoint."""
    return PlainTextResponse(
        content=generate_metrics(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )

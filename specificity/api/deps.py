"""
API Dependencies

FastAPI dependency injection functions for the API layer.

Reference Documents:
- GUIDELINES: Sinha pp. 89-91 (Dependency injection patterns)

Pattern: Components are created once in the application lifespan and kept on
app.state. Routes reach them only through these functions; tests place
fakes on app.state or replace the functions via dependency_overrides.
"""

import logging
from typing import Optional

from fastapi import HTTPException, Request, status

from specificity.core.config import Settings, get_settings as _get_settings
from specificity.database.health import Probe
from specificity.database.query_metrics import QueryMetricsStore
from specificity.resilience.failover import FailoverClient
from specificity.resilience.health_tracker import ProviderHealthTracker

logger = logging.getLogger(__name__)


def get_settings() -> Settings:
    """Get application settings (cached singleton from core.config)."""
    return _get_settings()


def _require_state(request: Request, name: str):
    component = getattr(request.app.state, name, None)
    if component is None:
        logger.error(f"Component '{name}' not initialized on app.state")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{name} not initialized",
        )
    return component


def get_health_tracker(request: Request) -> ProviderHealthTracker:
    """Provider health tracker created at startup."""
    return _require_state(request, "health_tracker")


def get_failover_client(request: Request) -> FailoverClient:
    """Failover client created at startup."""
    return _require_state(request, "failover_client")


def get_query_metrics(request: Request) -> QueryMetricsStore:
    """Query metrics store created at startup."""
    return _require_state(request, "query_metrics")


def get_database_probe(request: Request) -> Optional[Probe]:
    """
    Database probe, if the embedding application registered one.

    Returns:
        Async probe callable or None
    """
    return getattr(request.app.state, "database_probe", None)

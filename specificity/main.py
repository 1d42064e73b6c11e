"""
Specificity Core - Main Application Entry Point

FastAPI application exposing provider failover state and rolling query
metrics for the Specificity service.

The application lifespan builds one ProviderHealthTracker, FailoverSelector,
FailoverClient and QueryMetricsStore from Settings and keeps them on
app.state. Embedding applications register a database probe by setting
app.state.database_probe.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from specificity.api.middleware.logging import RequestLoggingMiddleware
from specificity.api.routes.health import router as health_router
from specificity.core.config import get_settings
from specificity.database.query_metrics import QueryMetricsStore
from specificity.observability.logging import configure_logging, get_logger
from specificity.observability.tracing import setup_tracing
from specificity.resilience.failover import DEFAULT_PROVIDERS, FailoverClient, FailoverSelector
from specificity.resilience.health_tracker import ProviderHealthTracker

APP_NAME = "Specificity Core"
APP_DESCRIPTION = "Provider health, failover and query metrics for Specificity"

settings = get_settings()
logger = get_logger(__name__)


# =============================================================================
# Lifespan Context Manager
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan context manager for startup/shutdown events.

    Uses the lifespan pattern instead of the deprecated @app.on_event.
    Reference: Sinha (FastAPI) pp. 89-91 - Lifespan patterns
    """
    configure_logging(level=settings.log_level, force=True)
    if settings.otlp_endpoint:
        setup_tracing(settings.service_name, settings.otlp_endpoint)

    failover_config = settings.failover_config()
    tracker = ProviderHealthTracker(failover_config, [p.name for p in DEFAULT_PROVIDERS])
    selector = FailoverSelector(tracker, DEFAULT_PROVIDERS)

    app.state.settings = settings
    app.state.health_tracker = tracker
    app.state.failover_client = FailoverClient(selector, failover_config)
    app.state.query_metrics = QueryMetricsStore(
        retention_seconds=settings.metrics_retention_seconds,
        slow_threshold_ms=settings.slow_query_threshold_ms,
        critical_threshold_ms=settings.critical_query_threshold_ms,
    )
    app.state.initialized = True

    logger.info(
        "service_started",
        service=settings.service_name,
        version=settings.version,
        environment=settings.environment,
        failover_enabled=failover_config.enabled,
        max_failures=failover_config.max_failures,
        cooldown_seconds=failover_config.cooldown_seconds,
    )

    yield

    logger.info("service_stopping", service=settings.service_name)
    app.state.initialized = False


app = FastAPI(
    title=APP_NAME,
    description=APP_DESCRIPTION,
    version=settings.version,
    docs_url="/docs" if settings.environment != "production" else None,
    redoc_url="/redoc" if settings.environment != "production" else None,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)

app.include_router(health_router)


# =============================================================================
# Root Endpoint
# =============================================================================


@app.get("/", tags=["Info"])
async def root() -> dict[str, Any]:
    """Root endpoint returning basic service information."""
    return {
        "service": APP_NAME,
        "version": settings.version,
        "docs": "/docs" if settings.environment != "production" else "disabled",
    }

"""
Resilience Metrics

Prometheus metrics for provider health transitions and failover attempts.

Metrics Provided:
- Provider state transitions (counter)
- Current provider state (gauge)
- Failover attempts / successes per provider (counters)
- Requests rejected because every provider was down (counter)

Anti-Pattern Compliance:
- AP-1: Metric names as constants
"""

from prometheus_client import Counter, Gauge

# =============================================================================
# Constants (AP-1 Compliance: No duplicated string literals)
# =============================================================================

METRIC_PROVIDER_TRANSITIONS = "specificity_provider_state_transitions_total"
METRIC_PROVIDER_STATE = "specificity_provider_state"
METRIC_FAILOVER_ATTEMPTS = "specificity_failover_attempts_total"
METRIC_FAILOVER_SUCCESSES = "specificity_failover_successes_total"
METRIC_ALL_PROVIDERS_DOWN = "specificity_all_providers_down_total"


# =============================================================================
# Provider State Metrics
# =============================================================================

PROVIDER_STATE_TRANSITIONS = Counter(
    name=METRIC_PROVIDER_TRANSITIONS,
    documentation="Total number of provider circuit state transitions",
    labelnames=["provider", "to_state", "from_state"],
)

PROVIDER_STATE_GAUGE = Gauge(
    name=METRIC_PROVIDER_STATE,
    documentation="Current provider circuit state (0=closed, 1=half_open, 2=open)",
    labelnames=["provider"],
)

_STATE_TO_NUMERIC = {
    "closed": 0,
    "half_open": 1,
    "open": 2,
}


def record_provider_state_transition(
    provider: str,
    to_state: str,
    from_state: str,
) -> None:
    """
    Record a provider circuit state transition.

    Args:
        provider: Provider identifier
        to_state: State transitioning to (closed, open, half_open)
        from_state: State transitioning from (closed, open, half_open)
    """
    PROVIDER_STATE_TRANSITIONS.labels(
        provider=provider,
        to_state=to_state,
        from_state=from_state,
    ).inc()

    set_provider_state(provider, to_state)


def set_provider_state(provider: str, state: str) -> None:
    """Set the provider state gauge (closed, half_open, open)."""
    PROVIDER_STATE_GAUGE.labels(provider=provider).set(
        _STATE_TO_NUMERIC.get(state, 0)
    )


# =============================================================================
# Failover Metrics
# =============================================================================

FAILOVER_ATTEMPTS = Counter(
    name=METRIC_FAILOVER_ATTEMPTS,
    documentation="Total number of provider attempts made by the failover client",
    labelnames=["provider"],
)

FAILOVER_SUCCESSES = Counter(
    name=METRIC_FAILOVER_SUCCESSES,
    documentation="Total number of provider attempts that succeeded",
    labelnames=["provider"],
)

ALL_PROVIDERS_DOWN = Counter(
    name=METRIC_ALL_PROVIDERS_DOWN,
    documentation="Total number of requests rejected because no provider was eligible",
)


def record_failover_attempt(provider: str) -> None:
    """Record an attempt against a provider."""
    FAILOVER_ATTEMPTS.labels(provider=provider).inc()


def record_failover_success(provider: str) -> None:
    """Record a successful attempt against a provider."""
    FAILOVER_SUCCESSES.labels(provider=provider).inc()


def record_all_providers_down() -> None:
    """Record a request that found no eligible provider."""
    ALL_PROVIDERS_DOWN.inc()

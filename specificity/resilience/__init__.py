"""
Resilience patterns for the Specificity resilience core.

This module provides:
- ProviderHealthTracker: Per-provider failure streaks and cooldowns
- FailoverSelector: Deterministic priority-ordered provider selection
- FailoverClient: Provider calls with retry and automatic failover
- with_retry: Exponential backoff with jitter
- Prometheus metrics for provider state transitions

Reference Documents:
- Release It! (Nygard): Stability patterns
- Microservices Patterns (Richardson): Fallback patterns
"""

from specificity.resilience.failover import (
    DEFAULT_PROVIDERS,
    FailoverClient,
    FailoverSelector,
    ProviderConfig,
    is_provider_error,
    order_by_priority,
)
from specificity.resilience.health_tracker import (
    CircuitState,
    ProviderHealth,
    ProviderHealthTracker,
    ProviderState,
    ProviderStats,
)
from specificity.resilience.metrics import (
    record_all_providers_down,
    record_failover_attempt,
    record_failover_success,
    record_provider_state_transition,
)
from specificity.resilience.retry import (
    ERROR_RETRY_POLICIES,
    ErrorCategory,
    ErrorType,
    RetryPolicy,
    calculate_delay,
    categorize_error,
    is_rate_limit_error,
    is_transient_error,
    with_retry,
)

__all__ = [
    # Health tracking
    "ProviderHealthTracker",
    "ProviderState",
    "ProviderStats",
    "ProviderHealth",
    "CircuitState",
    # Failover
    "ProviderConfig",
    "DEFAULT_PROVIDERS",
    "FailoverSelector",
    "FailoverClient",
    "order_by_priority",
    "is_provider_error",
    # Retry
    "RetryPolicy",
    "ERROR_RETRY_POLICIES",
    "ErrorType",
    "ErrorCategory",
    "calculate_delay",
    "categorize_error",
    "is_rate_limit_error",
    "is_transient_error",
    "with_retry",
    # Metrics
    "record_provider_state_transition",
    "record_failover_attempt",
    "record_failover_success",
    "record_all_providers_down",
]

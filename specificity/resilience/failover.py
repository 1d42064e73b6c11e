"""
Provider Failover

Picks which upstream LLM provider serves a request and runs provider calls
with retry and automatic failover.

Reference Documents:
- Building Microservices (Newman): Cascading failure prevention
- Microservices Patterns (Richardson): Fallback patterns

Selection:
    Providers are tried in ascending priority number. Disabled providers and
    providers in cooldown are skipped. Equal priorities keep their configured
    order. There is no randomization or load weighting.

Selection never mutates health state. Only the outcome of an attempted call,
recorded through the ProviderHealthTracker, changes what is selected next.

Anti-Pattern Compliance:
- AP-1: Constants for provider names
- AP-5: AllProvidersDownError is the single failure surfaced to callers
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, TypeVar

from specificity.core.config import FailoverConfig
from specificity.core.exceptions import AllProvidersDownError, ConfigurationError, ProviderError
from specificity.observability.logging import get_logger
from specificity.resilience.health_tracker import ProviderHealth, ProviderHealthTracker
from specificity.resilience.metrics import (
    record_all_providers_down,
    record_failover_attempt,
    record_failover_success,
)
from specificity.resilience.retry import (
    DEFAULT_PROVIDER_RETRY_POLICY,
    ErrorType,
    RetryPolicy,
    categorize_error,
    is_rate_limit_error,
    with_retry,
)

T = TypeVar("T")

logger = get_logger(__name__)


# =============================================================================
# Constants (AP-1 Compliance: No duplicated string literals)
# =============================================================================

PROVIDER_OPENROUTER = "openrouter"
PROVIDER_GROQ = "groq"


# =============================================================================
# Provider Configuration
# =============================================================================


@dataclass(frozen=True)
class ProviderConfig:
    """
    Configuration for an upstream LLM provider.

    Attributes:
        name: Provider identifier
        priority: Lower numbers are tried first
        enabled: Disabled providers are never selected
    """

    name: str
    priority: int
    enabled: bool = True


DEFAULT_PROVIDERS: List[ProviderConfig] = [
    ProviderConfig(name=PROVIDER_OPENROUTER, priority=1),
    ProviderConfig(name=PROVIDER_GROQ, priority=2),
]


def order_by_priority(providers: Sequence[ProviderConfig]) -> List[ProviderConfig]:
    """Enabled providers in ascending priority; ties keep input order."""
    return sorted((p for p in providers if p.enabled), key=lambda p: p.priority)


def is_provider_error(error: BaseException, provider: str) -> bool:
    """
    Whether a failure is attributable to the provider and should trigger failover.

    ProviderError instances count only for the provider they name. Rate limits,
    upstream 5xx and errors mentioning the provider by name also count.
    Validation and unknown errors are the caller's problem and do not.
    """
    if isinstance(error, ProviderError):
        return error.provider == provider
    if is_rate_limit_error(error):
        return True
    category = categorize_error(error)
    if category.type in (ErrorType.PROVIDER_FAILURE, ErrorType.TIMEOUT, ErrorType.NETWORK):
        return True
    return provider.lower() in str(error).lower()


# =============================================================================
# Failover Selector
# =============================================================================


class FailoverSelector:
    """
    Deterministic priority-ordered provider selection.

    Example:
        >>> selector = FailoverSelector(tracker, DEFAULT_PROVIDERS)
        >>> selector.select_provider().name
        'openrouter'
    """

    def __init__(
        self,
        tracker: ProviderHealthTracker,
        providers: Sequence[ProviderConfig] = DEFAULT_PROVIDERS,
    ) -> None:
        """
        Initialize FailoverSelector.

        Raises:
            ConfigurationError: If a provider name is empty or repeated
        """
        names = [p.name for p in providers]
        if any(not name for name in names):
            raise ConfigurationError("Provider name must not be empty", field="providers")
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ConfigurationError(
                f"Duplicate provider names: {', '.join(duplicates)}",
                field="providers",
            )

        self._tracker = tracker
        self._providers = list(providers)

    @property
    def tracker(self) -> ProviderHealthTracker:
        """Health tracker consulted for eligibility."""
        return self._tracker

    @property
    def providers(self) -> List[ProviderConfig]:
        """Configured providers, in configured order."""
        return list(self._providers)

    def select_provider(
        self,
        providers: Optional[Sequence[ProviderConfig]] = None,
        at_time: Optional[float] = None,
    ) -> ProviderConfig:
        """
        First eligible provider in priority order.

        Args:
            providers: Candidates (default: configured providers)
            at_time: Time of selection (default: tracker clock)

        Returns:
            The selected provider

        Raises:
            AllProvidersDownError: If no candidate is enabled and eligible,
                including when there are no candidates at all
        """
        candidates = order_by_priority(self._providers if providers is None else providers)
        for provider in candidates:
            if self._tracker.is_eligible(provider.name, at_time):
                return provider

        raise AllProvidersDownError(
            "No eligible provider available",
            providers=[p.name for p in candidates],
        )


# =============================================================================
# Failover Client
# =============================================================================


class FailoverClient:
    """
    Runs provider calls with retry and automatic failover.

    Each attempt picks the best eligible provider that has not been tried yet
    for this request, retries transient errors against it, and records the
    final outcome on the tracker. Provider-attributable failures move on to the
    next provider; any other error is re-raised as is.

    Example:
        >>> client = FailoverClient(selector, config)
        >>> text = await client.execute_with_failover(lambda provider: complete(provider, prompt))
    """

    def __init__(
        self,
        selector: FailoverSelector,
        config: FailoverConfig,
        retry_policy: RetryPolicy = DEFAULT_PROVIDER_RETRY_POLICY,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ) -> None:
        """
        Initialize FailoverClient.

        Args:
            selector: Provider selector (owns the health tracker)
            config: Failover configuration; enabled=False disables failover
            retry_policy: Per-provider retry policy
            sleep: Awaitable sleep used between retries (default: asyncio.sleep)
        """
        self._selector = selector
        self._tracker = selector.tracker
        self._config = config
        self._retry_policy = retry_policy
        self._sleep = sleep
        self._current_provider: Optional[str] = None

    @property
    def selector(self) -> FailoverSelector:
        """Selector deciding which provider is tried next."""
        return self._selector

    @property
    def current_provider(self) -> Optional[str]:
        """Provider that served the most recent successful call."""
        return self._current_provider

    async def _call(
        self,
        func: Callable[[str], Awaitable[T]],
        provider: str,
        retry_policy: RetryPolicy,
    ) -> T:
        kwargs: Dict[str, Any] = {}
        if self._sleep is not None:
            kwargs["sleep"] = self._sleep
        return await with_retry(lambda: func(provider), retry_policy, **kwargs)

    async def execute_with_failover(
        self,
        func: Callable[[str], Awaitable[T]],
        retry_policy: Optional[RetryPolicy] = None,
        skip_failover: bool = False,
    ) -> T:
        """
        Execute a provider call with retry and failover.

        Args:
            func: Async callable taking the provider name
            retry_policy: Override the per-provider retry policy
            skip_failover: Call the top-priority provider with retry only

        Returns:
            Result from the provider that served the call

        Raises:
            AllProvidersDownError: No eligible provider could serve the call
            Exception: Errors not attributable to a provider, unchanged
        """
        policy = retry_policy or self._retry_policy

        if not self._config.enabled or skip_failover:
            ordered = order_by_priority(self._selector.providers)
            if not ordered:
                raise AllProvidersDownError("No enabled provider configured")
            return await self._call(func, ordered[0].name, policy)

        attempted: List[str] = []
        provider_errors: Dict[str, str] = {}

        while True:
            remaining = [p for p in self._selector.providers if p.name not in attempted]
            try:
                provider = self._selector.select_provider(remaining)
            except AllProvidersDownError:
                record_all_providers_down()
                logger.error(
                    "all_providers_failed",
                    attempted_providers=attempted,
                    provider_errors=provider_errors,
                )
                raise AllProvidersDownError(
                    "All providers failed or are cooling down",
                    providers=[p.name for p in self._selector.providers],
                    provider_errors=provider_errors,
                ) from None

            name = provider.name
            attempted.append(name)
            record_failover_attempt(name)
            logger.debug(
                "provider_attempt",
                provider=name,
                health=self._tracker.health(name).value,
            )

            try:
                result = await self._call(func, name, policy)
            except Exception as e:
                self._tracker.record_failure(name)
                provider_errors[name] = str(e)
                logger.warning(
                    "provider_call_failed",
                    provider=name,
                    error=str(e),
                    health=self._tracker.health(name).value,
                )
                if not is_provider_error(e, name):
                    raise
                continue

            self._tracker.record_success(name)
            record_failover_success(name)
            if self._current_provider is not None and self._current_provider != name:
                logger.info("provider_switched", from_provider=self._current_provider, to_provider=name)
            self._current_provider = name
            return result

    def get_stats(self, at_time: Optional[float] = None) -> Dict[str, Any]:
        """
        Provider statistics for monitoring.

        Returns:
            Dict with current_provider, providers, is_healthy, has_active_circuit
        """
        stats = self._tracker.get_all_stats(at_time)
        return {
            "current_provider": self._current_provider,
            "providers": stats,
            "is_healthy": all(s.health != ProviderHealth.DOWN for s in stats),
            "has_active_circuit": any(not s.is_available for s in stats),
        }

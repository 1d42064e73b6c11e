"""
Provider Health Tracker

Tracks per-provider failure streaks and cooldowns, and answers whether a
provider may receive new requests.

Reference Documents:
- Release It! (Nygard): Stability patterns, circuit breaker
- Building Reactive Microservices in Java (Escoffier) Ch.6: Circuit breaker pattern

State Machine (per provider):
    CLOSED: Healthy, eligible for selection
    OPEN: Failures reached max_failures, excluded until down_until
    HALF_OPEN: Cooldown elapsed but no outcome recorded since; eligible again

Expiry is pull-based: nothing sweeps cooldowns. is_eligible() compares the
current time with down_until and never mutates state; down_until is only
cleared by record_success() or an explicit reset.

Failures are windowed: the consecutive count after a failure is capped at the
number of failures still inside failure_window_seconds, so an old streak that
went stale cannot trip the cooldown on its own.

Concurrency:
    All methods are synchronous and complete without awaiting, so callers on a
    single asyncio loop never interleave inside a read-modify-write.

Anti-Pattern Compliance:
- AP-1: State names as enum values, no duplicated string literals
"""

import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Deque, Dict, Iterable, List, Optional

from specificity.core.aggregates import safe_ratio
from specificity.core.config import FailoverConfig
from specificity.observability.logging import get_logger
from specificity.resilience.metrics import (
    record_provider_state_transition,
    set_provider_state,
)

logger = get_logger(__name__)


# =============================================================================
# State Enums
# =============================================================================


class ProviderHealth(str, Enum):
    """
    Coarse provider health for dashboards.

    HEALTHY: No significant failure streak
    DEGRADED: Streak at half of max_failures or more, still eligible
    DOWN: In cooldown, excluded from selection
    """

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    DOWN = "down"


class CircuitState(str, Enum):
    """Circuit view of a provider derived from its cooldown."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


# =============================================================================
# Provider State
# =============================================================================


@dataclass
class ProviderState:
    """
    Mutable health record for one upstream provider.

    Attributes:
        provider_id: Stable provider identifier
        consecutive_failures: Failures since the last success, capped by the window
        down_until: Time until which the provider is excluded, or None
        failure_timestamps: Recent failure times, oldest first
        success_count: Lifetime successes
        failure_count: Lifetime failures
    """

    provider_id: str
    consecutive_failures: int = 0
    down_until: Optional[float] = None
    failure_timestamps: Deque[float] = field(default_factory=deque)
    success_count: int = 0
    failure_count: int = 0

    def copy(self) -> "ProviderState":
        """Return a detached copy safe to hand to callers."""
        return ProviderState(
            provider_id=self.provider_id,
            consecutive_failures=self.consecutive_failures,
            down_until=self.down_until,
            failure_timestamps=deque(self.failure_timestamps),
            success_count=self.success_count,
            failure_count=self.failure_count,
        )


@dataclass(frozen=True)
class ProviderStats:
    """Read-only provider snapshot for monitoring."""

    provider_id: str
    health: ProviderHealth
    circuit_state: CircuitState
    success_rate: float
    consecutive_failures: int
    is_available: bool


# =============================================================================
# Provider Health Tracker
# =============================================================================


class ProviderHealthTracker:
    """
    Per-provider failure counting and cooldown policy.

    Example:
        >>> tracker = ProviderHealthTracker(PRODUCTION_FAILOVER_CONFIG, ["openrouter", "groq"])
        >>> tracker.record_failure("openrouter", at_time=10.0)
        >>> tracker.is_eligible("openrouter", at_time=11.0)
        True

    Attributes:
        config: Failover thresholds
        provider_ids: Providers known to the tracker, in registration order
    """

    def __init__(
        self,
        config: FailoverConfig,
        providers: Iterable[str] = (),
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize ProviderHealthTracker.

        Args:
            config: Failover thresholds
            providers: Provider ids to register with a zero state
            clock: Time source used when at_time is omitted (seconds)
        """
        self._config = config
        self._clock = clock
        self._states: Dict[str, ProviderState] = {}
        for provider_id in providers:
            self._states[provider_id] = ProviderState(provider_id=provider_id)

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def config(self) -> FailoverConfig:
        """Failover thresholds in use."""
        return self._config

    @property
    def provider_ids(self) -> List[str]:
        """Registered provider ids."""
        return list(self._states)

    def _now(self, at_time: Optional[float]) -> float:
        return self._clock() if at_time is None else at_time

    def _get_or_create(self, provider_id: str) -> ProviderState:
        state = self._states.get(provider_id)
        if state is None:
            state = ProviderState(provider_id=provider_id)
            self._states[provider_id] = state
        return state

    # =========================================================================
    # Outcome Recording
    # =========================================================================

    def record_success(self, provider_id: str, at_time: Optional[float] = None) -> None:
        """
        Record a successful call.

        Resets the failure streak and clears any cooldown. Unknown providers
        are registered with a zero state.

        Args:
            provider_id: Provider that served the call
            at_time: Time of the outcome (default: clock)
        """
        state = self._get_or_create(provider_id)
        from_state = self._circuit_state(state, self._now(at_time))

        state.consecutive_failures = 0
        state.down_until = None
        state.success_count += 1

        if from_state != CircuitState.CLOSED:
            logger.info(
                "provider_recovered",
                provider=provider_id,
                from_state=from_state.value,
            )
            record_provider_state_transition(
                provider_id, CircuitState.CLOSED.value, from_state.value
            )

    def record_failure(self, provider_id: str, at_time: Optional[float] = None) -> None:
        """
        Record a failed call.

        Appends the failure time, drops failures older than the window and
        extends the streak. Reaching max_failures starts a cooldown of
        cooldown_seconds from at_time.

        Args:
            provider_id: Provider that failed
            at_time: Time of the failure (default: clock)
        """
        now = self._now(at_time)
        state = self._get_or_create(provider_id)
        from_state = self._circuit_state(state, now)

        state.failure_timestamps.append(now)
        cutoff = now - self._config.failure_window_seconds
        while state.failure_timestamps and state.failure_timestamps[0] < cutoff:
            state.failure_timestamps.popleft()

        state.consecutive_failures = min(
            state.consecutive_failures + 1, len(state.failure_timestamps)
        )
        state.failure_count += 1

        if state.consecutive_failures >= self._config.max_failures:
            state.down_until = now + self._config.cooldown_seconds
            if from_state != CircuitState.OPEN:
                logger.warning(
                    "provider_down",
                    provider=provider_id,
                    consecutive_failures=state.consecutive_failures,
                    max_failures=self._config.max_failures,
                    cooldown_seconds=self._config.cooldown_seconds,
                )
                record_provider_state_transition(
                    provider_id, CircuitState.OPEN.value, from_state.value
                )
        elif state.consecutive_failures >= self._config.max_failures / 2:
            logger.warning(
                "provider_degraded",
                provider=provider_id,
                consecutive_failures=state.consecutive_failures,
            )

    # =========================================================================
    # Reads (never mutate provider state)
    # =========================================================================

    def is_eligible(self, provider_id: str, at_time: Optional[float] = None) -> bool:
        """
        Whether the provider may receive new requests.

        True iff the provider has no cooldown or the cooldown has elapsed.
        Unknown providers are eligible. Never mutates state.
        """
        state = self._states.get(provider_id)
        if state is None or state.down_until is None:
            return True
        return self._now(at_time) >= state.down_until

    def circuit_state(self, provider_id: str, at_time: Optional[float] = None) -> CircuitState:
        """Circuit view of the provider at the given time."""
        state = self._states.get(provider_id)
        if state is None:
            return CircuitState.CLOSED
        return self._circuit_state(state, self._now(at_time))

    def health(self, provider_id: str, at_time: Optional[float] = None) -> ProviderHealth:
        """Coarse health of the provider at the given time."""
        state = self._states.get(provider_id)
        if state is None:
            return ProviderHealth.HEALTHY
        return self._health(state, self._now(at_time))

    def get_state(self, provider_id: str) -> Optional[ProviderState]:
        """Copy of the provider's raw state, or None if unknown."""
        state = self._states.get(provider_id)
        return state.copy() if state is not None else None

    def get_stats(self, provider_id: str, at_time: Optional[float] = None) -> ProviderStats:
        """
        Snapshot for monitoring.

        success_rate is 1.0 for a provider with no recorded calls.
        Also refreshes the provider state gauge, which is how an elapsed
        cooldown shows up as half_open between recorded outcomes.
        """
        state = self._states.get(provider_id) or ProviderState(provider_id=provider_id)
        now = self._now(at_time)
        circuit = self._circuit_state(state, now)
        set_provider_state(provider_id, circuit.value)
        total_calls = state.success_count + state.failure_count
        return ProviderStats(
            provider_id=provider_id,
            health=self._health(state, now),
            circuit_state=circuit,
            success_rate=safe_ratio(state.success_count, total_calls, default=1.0),
            consecutive_failures=state.consecutive_failures,
            is_available=self.is_eligible(provider_id, now),
        )

    def get_all_stats(self, at_time: Optional[float] = None) -> List[ProviderStats]:
        """Snapshots for every registered provider, in registration order."""
        now = self._now(at_time)
        return [self.get_stats(provider_id, now) for provider_id in self._states]

    # =========================================================================
    # Resets
    # =========================================================================

    def reset_provider(self, provider_id: str) -> bool:
        """
        Manually return a provider to a zero state.

        Returns:
            False if the provider is unknown, True otherwise
        """
        if provider_id not in self._states:
            return False
        self._states[provider_id] = ProviderState(provider_id=provider_id)
        logger.info("provider_reset", provider=provider_id)
        set_provider_state(provider_id, CircuitState.CLOSED.value)
        return True

    def reset(self) -> None:
        """Reset every registered provider (test isolation)."""
        for provider_id in list(self._states):
            self._states[provider_id] = ProviderState(provider_id=provider_id)
            set_provider_state(provider_id, CircuitState.CLOSED.value)

    # =========================================================================
    # Derivations
    # =========================================================================

    @staticmethod
    def _circuit_state(state: ProviderState, now: float) -> CircuitState:
        if state.down_until is None:
            return CircuitState.CLOSED
        if now < state.down_until:
            return CircuitState.OPEN
        return CircuitState.HALF_OPEN

    def _health(self, state: ProviderState, now: float) -> ProviderHealth:
        if state.down_until is not None and now < state.down_until:
            return ProviderHealth.DOWN
        if (
            state.consecutive_failures > 0
            and state.consecutive_failures >= self._config.max_failures / 2
        ):
            return ProviderHealth.DEGRADED
        return ProviderHealth.HEALTHY

"""
Tests for ProviderHealthTracker - Failure streaks and cooldowns.

Reference Documents:
- Release It! (Nygard): Stability patterns
- Building Reactive Microservices in Java (Escoffier) Ch.6: Circuit breaker pattern

This module tests:
- Cooldown starts when the streak reaches max_failures
- Expiry is lazy: eligibility is a pure comparison against down_until
- record_success clears the streak and the cooldown
- Failures outside the window do not count toward the streak
- Stats and health derivations
"""

import pytest
from prometheus_client import REGISTRY

from specificity.core.config import FailoverConfig
from specificity.resilience.health_tracker import (
    CircuitState,
    ProviderHealth,
    ProviderHealthTracker,
)


def _fail(tracker: ProviderHealthTracker, provider: str, times: int, at_time: float) -> None:
    for _ in range(times):
        tracker.record_failure(provider, at_time=at_time)


# =============================================================================
# Initial State
# =============================================================================


class TestInitialState:
    """A registered provider with no history."""

    def test_registered_provider_is_eligible(self, tracker) -> None:
        assert tracker.is_eligible("openrouter") is True

    def test_registered_provider_is_closed_and_healthy(self, tracker) -> None:
        assert tracker.circuit_state("openrouter") == CircuitState.CLOSED
        assert tracker.health("openrouter") == ProviderHealth.HEALTHY

    def test_provider_ids_in_registration_order(self, tracker) -> None:
        assert tracker.provider_ids == ["openrouter", "groq"]

    def test_success_rate_without_calls_is_one(self, tracker) -> None:
        """No recorded calls reads as fully healthy, not 0%."""
        assert tracker.get_stats("openrouter").success_rate == 1.0

    def test_unknown_provider_is_eligible(self, tracker) -> None:
        assert tracker.is_eligible("anthropic") is True
        assert tracker.get_state("anthropic") is None


# =============================================================================
# Failure Streaks and Cooldown
# =============================================================================


class TestCooldown:
    """Reaching max_failures excludes the provider for cooldown_seconds."""

    def test_below_threshold_stays_eligible(self, tracker, clock) -> None:
        _fail(tracker, "openrouter", 2, clock.now)

        assert tracker.is_eligible("openrouter") is True
        assert tracker.circuit_state("openrouter") == CircuitState.CLOSED

    def test_threshold_starts_cooldown(self, tracker, clock) -> None:
        _fail(tracker, "openrouter", 3, clock.now)

        state = tracker.get_state("openrouter")
        assert state.consecutive_failures == 3
        assert state.down_until == clock.now + 60.0
        assert tracker.is_eligible("openrouter") is False
        assert tracker.circuit_state("openrouter") == CircuitState.OPEN
        assert tracker.health("openrouter") == ProviderHealth.DOWN

    def test_eligible_again_once_cooldown_elapses(self, tracker, clock) -> None:
        _fail(tracker, "openrouter", 3, clock.now)

        clock.advance(59.9)
        assert tracker.is_eligible("openrouter") is False

        clock.advance(0.1)
        assert tracker.is_eligible("openrouter") is True

    def test_eligibility_check_does_not_mutate_state(self, tracker, clock) -> None:
        """Expiry is lazy: down_until survives until a success or reset."""
        _fail(tracker, "openrouter", 3, clock.now)
        down_until = tracker.get_state("openrouter").down_until

        clock.advance(120.0)
        assert tracker.is_eligible("openrouter") is True

        state = tracker.get_state("openrouter")
        assert state.down_until == down_until
        assert state.consecutive_failures == 3

    def test_elapsed_cooldown_reads_half_open(self, tracker, clock) -> None:
        _fail(tracker, "openrouter", 3, clock.now)
        clock.advance(61.0)

        assert tracker.circuit_state("openrouter") == CircuitState.HALF_OPEN
        assert tracker.health("openrouter") == ProviderHealth.DEGRADED

    def test_failure_after_cooldown_restarts_cooldown(self, tracker, clock) -> None:
        _fail(tracker, "openrouter", 3, clock.now)
        clock.advance(61.0)

        tracker.record_failure("openrouter")

        assert tracker.get_state("openrouter").down_until == clock.now + 60.0
        assert tracker.is_eligible("openrouter") is False

    def test_at_time_overrides_clock(self, tracker) -> None:
        _fail(tracker, "groq", 3, at_time=10.0)

        assert tracker.is_eligible("groq", at_time=69.0) is False
        assert tracker.is_eligible("groq", at_time=70.0) is True

    def test_providers_tracked_independently(self, tracker, clock) -> None:
        _fail(tracker, "openrouter", 3, clock.now)

        assert tracker.is_eligible("openrouter") is False
        assert tracker.is_eligible("groq") is True


class TestFailureWindow:
    """Only failures within failure_window_seconds count toward the streak."""

    def test_stale_failures_do_not_trip_cooldown(self, tracker) -> None:
        tracker.record_failure("openrouter", at_time=0.0)
        tracker.record_failure("openrouter", at_time=200.0)
        tracker.record_failure("openrouter", at_time=400.0)

        state = tracker.get_state("openrouter")
        assert state.consecutive_failures == 2
        assert state.down_until is None
        assert list(state.failure_timestamps) == [200.0, 400.0]

    def test_failures_inside_window_trip_cooldown(self, tracker) -> None:
        tracker.record_failure("openrouter", at_time=0.0)
        tracker.record_failure("openrouter", at_time=200.0)
        tracker.record_failure("openrouter", at_time=299.0)

        assert tracker.is_eligible("openrouter", at_time=300.0) is False

    def test_lifetime_failure_count_unaffected_by_window(self, tracker) -> None:
        tracker.record_failure("openrouter", at_time=0.0)
        tracker.record_failure("openrouter", at_time=1000.0)

        assert tracker.get_state("openrouter").failure_count == 2


# =============================================================================
# Recovery
# =============================================================================


class TestRecordSuccess:
    """A success clears the streak and any cooldown."""

    def test_success_resets_streak(self, tracker, clock) -> None:
        _fail(tracker, "openrouter", 2, clock.now)

        tracker.record_success("openrouter")

        state = tracker.get_state("openrouter")
        assert state.consecutive_failures == 0
        assert state.success_count == 1
        assert tracker.health("openrouter") == ProviderHealth.HEALTHY

    def test_success_clears_cooldown(self, tracker, clock) -> None:
        _fail(tracker, "openrouter", 3, clock.now)

        tracker.record_success("openrouter")

        assert tracker.get_state("openrouter").down_until is None
        assert tracker.is_eligible("openrouter") is True
        assert tracker.circuit_state("openrouter") == CircuitState.CLOSED

    def test_success_registers_unknown_provider(self, tracker) -> None:
        tracker.record_success("anthropic")

        assert tracker.get_state("anthropic").success_count == 1
        assert "anthropic" in tracker.provider_ids

    def test_recovery_records_transition_metric(self, tracker, clock) -> None:
        labels = {"provider": "groq", "to_state": "closed", "from_state": "open"}
        before = REGISTRY.get_sample_value(
            "specificity_provider_state_transitions_total", labels
        ) or 0.0

        _fail(tracker, "groq", 3, clock.now)
        tracker.record_success("groq")

        after = REGISTRY.get_sample_value("specificity_provider_state_transitions_total", labels)
        assert after == before + 1


# =============================================================================
# Health and Stats
# =============================================================================


class TestHealthDerivation:
    @pytest.mark.parametrize(
        "failures,expected",
        [
            (0, ProviderHealth.HEALTHY),
            (1, ProviderHealth.HEALTHY),
            (2, ProviderHealth.DEGRADED),
            (3, ProviderHealth.DOWN),
        ],
    )
    def test_health_by_streak(self, tracker, clock, failures, expected) -> None:
        _fail(tracker, "openrouter", failures, clock.now)

        assert tracker.health("openrouter") == expected

    def test_single_failure_threshold_is_down_not_degraded(self, clock) -> None:
        tracker = ProviderHealthTracker(
            FailoverConfig(max_failures=1, cooldown_seconds=5.0, failure_window_seconds=60.0),
            ["groq"],
            clock=clock,
        )

        tracker.record_failure("groq")

        assert tracker.health("groq") == ProviderHealth.DOWN


class TestStats:
    def test_success_rate_over_lifetime_calls(self, tracker, clock) -> None:
        tracker.record_success("groq")
        _fail(tracker, "groq", 3, clock.now)

        stats = tracker.get_stats("groq")
        assert stats.success_rate == 0.25
        assert stats.consecutive_failures == 3
        assert stats.is_available is False
        assert stats.circuit_state == CircuitState.OPEN

    def test_all_stats_in_registration_order(self, tracker) -> None:
        stats = tracker.get_all_stats()

        assert [s.provider_id for s in stats] == ["openrouter", "groq"]

    def test_state_gauge_reads_half_open_after_cooldown(self, tracker) -> None:
        labels = {"provider": "gauge-half-open"}
        for at_time in (0.0, 1.0, 2.0):
            tracker.record_failure("gauge-half-open", at_time=at_time)
        assert REGISTRY.get_sample_value("specificity_provider_state", labels) == 2

        stats = tracker.get_stats("gauge-half-open", at_time=100.0)

        assert stats.circuit_state == CircuitState.HALF_OPEN
        assert stats.is_available is True
        assert REGISTRY.get_sample_value("specificity_provider_state", labels) == 1

    def test_state_gauge_closed_after_manual_reset(self, tracker) -> None:
        labels = {"provider": "gauge-reset"}
        _fail(tracker, "gauge-reset", 3, 0.0)

        tracker.reset_provider("gauge-reset")

        assert REGISTRY.get_sample_value("specificity_provider_state", labels) == 0

    def test_get_state_returns_detached_copy(self, tracker, clock) -> None:
        tracker.record_failure("openrouter")
        snapshot = tracker.get_state("openrouter")
        snapshot.failure_timestamps.clear()
        snapshot.consecutive_failures = 99

        state = tracker.get_state("openrouter")
        assert state.consecutive_failures == 1
        assert len(state.failure_timestamps) == 1


# =============================================================================
# Resets
# =============================================================================


class TestResets:
    def test_reset_provider_returns_zero_state(self, tracker, clock) -> None:
        _fail(tracker, "openrouter", 3, clock.now)

        assert tracker.reset_provider("openrouter") is True

        state = tracker.get_state("openrouter")
        assert state.consecutive_failures == 0
        assert state.down_until is None
        assert state.failure_count == 0
        assert tracker.is_eligible("openrouter") is True

    def test_reset_unknown_provider_returns_false(self, tracker) -> None:
        assert tracker.reset_provider("anthropic") is False

    def test_reset_all(self, tracker, clock) -> None:
        _fail(tracker, "openrouter", 3, clock.now)
        _fail(tracker, "groq", 3, clock.now)

        tracker.reset()

        assert all(s.is_available for s in tracker.get_all_stats())
        assert tracker.provider_ids == ["openrouter", "groq"]

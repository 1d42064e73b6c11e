"""
Retry with Exponential Backoff

Handles transient provider failures with bounded, jittered exponential
backoff, and classifies errors so the failover client can decide whether a
failure is worth retrying or should move on to the next provider.

Reference Documents:
- Release It! (Nygard): Timeouts and retries
- GUIDELINES pp. 1224: Retry logic for LLM API calls

Pattern: Exponential backoff with jitter
    delay = initial * multiplier ** attempt, capped at max, then ±25% jitter
"""

import asyncio
import random
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Dict, Optional, TypeVar

import httpx

from specificity.core.exceptions import ProviderError
from specificity.observability.logging import get_logger

T = TypeVar("T")

logger = get_logger(__name__)


# =============================================================================
# Retry Policy
# =============================================================================


@dataclass(frozen=True)
class RetryPolicy:
    """
    Retry configuration.

    Attributes:
        max_retries: Retries after the first attempt
        initial_delay_seconds: Delay before the first retry
        max_delay_seconds: Upper bound for any delay
        backoff_multiplier: Exponential growth factor
        jitter: Randomize delays by ±25% to avoid thundering herds
    """

    max_retries: int = 3
    initial_delay_seconds: float = 1.0
    max_delay_seconds: float = 30.0
    backoff_multiplier: float = 2.0
    jitter: bool = True


class ErrorType(str, Enum):
    """Error categories used for retry and failover decisions."""

    RATE_LIMIT = "rate_limit"
    PROVIDER_FAILURE = "provider_failure"
    VALIDATION = "validation"
    TIMEOUT = "timeout"
    NETWORK = "network"
    UNKNOWN = "unknown"


ERROR_RETRY_POLICIES: Dict[ErrorType, RetryPolicy] = {
    ErrorType.NETWORK: RetryPolicy(max_retries=3, initial_delay_seconds=1.0, max_delay_seconds=10.0),
    ErrorType.RATE_LIMIT: RetryPolicy(max_retries=2, initial_delay_seconds=5.0, max_delay_seconds=30.0),
    ErrorType.TIMEOUT: RetryPolicy(max_retries=2, initial_delay_seconds=2.0, max_delay_seconds=15.0),
    ErrorType.PROVIDER_FAILURE: RetryPolicy(max_retries=2, initial_delay_seconds=2.0, max_delay_seconds=15.0),
    ErrorType.UNKNOWN: RetryPolicy(max_retries=1, initial_delay_seconds=2.0, max_delay_seconds=10.0),
}

DEFAULT_PROVIDER_RETRY_POLICY = ERROR_RETRY_POLICIES[ErrorType.PROVIDER_FAILURE]


# =============================================================================
# Error Classification
# =============================================================================


@dataclass(frozen=True)
class ErrorCategory:
    """Result of categorize_error()."""

    type: ErrorType
    message: str
    is_retryable: bool


def _status_code(error: BaseException) -> Optional[int]:
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code
    if isinstance(error, ProviderError):
        return error.status_code
    return None


def is_transient_error(error: BaseException) -> bool:
    """
    Whether an error is transient and worth retrying.

    httpx timeouts and transport errors are always transient; HTTP status
    errors are transient for 429 and 5xx. Other exceptions are matched on
    their message.
    """
    if isinstance(error, (httpx.TimeoutException, httpx.TransportError)):
        return True

    status = _status_code(error)
    if status is not None:
        return status == 429 or status >= 500

    message = str(error).lower()
    markers = (
        "network", "fetch", "connection",
        "timeout", "timed out", "504",
        "rate limit", "429", "too many requests",
        "500", "502", "503",
        "unavailable", "temporarily",
    )
    return any(marker in message for marker in markers)


def categorize_error(error: BaseException) -> ErrorCategory:
    """
    Categorize an error for retry and failover decisions.

    Args:
        error: Exception raised by a provider call

    Returns:
        ErrorCategory with type, message and retryability
    """
    message = str(error)
    lower = message.lower()

    if isinstance(error, httpx.TimeoutException):
        return ErrorCategory(ErrorType.TIMEOUT, message, True)
    if isinstance(error, httpx.TransportError):
        return ErrorCategory(ErrorType.NETWORK, message, True)

    status = _status_code(error)
    if status == 429 or "rate limit" in lower or "429" in lower:
        return ErrorCategory(ErrorType.RATE_LIMIT, message, True)
    if "validation:" in lower:
        return ErrorCategory(ErrorType.VALIDATION, message, False)
    if "timeout" in lower or "timed out" in lower:
        return ErrorCategory(ErrorType.TIMEOUT, message, True)
    if "network" in lower or "fetch" in lower or "connection" in lower:
        return ErrorCategory(ErrorType.NETWORK, message, True)
    if (
        isinstance(error, ProviderError)
        or (status is not None and status >= 500)
        or "openrouter" in lower
        or "groq" in lower
        or "api error" in lower
    ):
        return ErrorCategory(ErrorType.PROVIDER_FAILURE, message, True)

    return ErrorCategory(ErrorType.UNKNOWN, message, False)


def is_rate_limit_error(error: BaseException) -> bool:
    """Whether the error signals a rate limit or exhausted quota."""
    if _status_code(error) == 429:
        return True
    message = str(error).lower()
    return "rate limit" in message or "429" in message or "quota" in message


# =============================================================================
# Backoff
# =============================================================================


def calculate_delay(
    attempt: int,
    initial_delay_seconds: float,
    max_delay_seconds: float,
    backoff_multiplier: float,
    jitter: bool,
) -> float:
    """
    Delay before retry number ``attempt + 1``.

    Args:
        attempt: Zero-based index of the attempt that just failed
        initial_delay_seconds: Base delay
        max_delay_seconds: Cap applied before jitter
        backoff_multiplier: Exponential growth factor
        jitter: Apply a random factor in [0.75, 1.25]

    Returns:
        Delay in seconds
    """
    delay = min(initial_delay_seconds * (backoff_multiplier**attempt), max_delay_seconds)
    if jitter:
        delay *= random.uniform(0.75, 1.25)
    return delay


async def with_retry(
    func: Callable[[], Awaitable[T]],
    policy: Optional[RetryPolicy] = None,
    is_retryable: Callable[[BaseException], bool] = is_transient_error,
    on_retry: Optional[Callable[[int, BaseException, float], None]] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Execute an async callable with retry logic and exponential backoff.

    Args:
        func: Zero-argument async callable
        policy: Retry configuration (default: RetryPolicy())
        is_retryable: Decides whether a failure is retried
        on_retry: Called with (retry_number, error, delay) before each wait
        sleep: Awaitable sleep, injectable for tests

    Returns:
        The callable's result

    Raises:
        Exception: The first non-retryable error, or the last error once
            retries are exhausted. Cancellation is never retried.
    """
    policy = policy or RetryPolicy()

    for attempt in range(policy.max_retries + 1):
        try:
            return await func()
        except Exception as e:
            if attempt >= policy.max_retries or not is_retryable(e):
                raise

            delay = calculate_delay(
                attempt,
                policy.initial_delay_seconds,
                policy.max_delay_seconds,
                policy.backoff_multiplier,
                policy.jitter,
            )
            logger.debug(
                "retrying_call",
                retry=attempt + 1,
                max_retries=policy.max_retries,
                delay_seconds=round(delay, 3),
                error=str(e),
            )
            if on_retry is not None:
                on_retry(attempt + 1, e, delay)
            await sleep(delay)

    # Only reachable with a negative max_retries.
    raise ValueError(f"max_retries must be >= 0, got {policy.max_retries}")

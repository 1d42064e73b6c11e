"""
Custom exceptions for the Specificity resilience core.

This module provides a hierarchy of custom exceptions. All exceptions inherit
from SpecificityException and include error codes for consistent error
handling and API responses.

Reference:
- GUIDELINES: Specific exceptions, always capture with 'as e'
"""

from enum import Enum
from typing import Any, Optional


# =============================================================================
# Error Codes Enum
# =============================================================================


class ErrorCode(str, Enum):
    """
    Error codes for Specificity exceptions.

    These codes provide a consistent way to identify error types
    across the API and in logging.
    """

    SPECIFICITY_ERROR = "SPECIFICITY_ERROR"
    PROVIDER_ERROR = "PROVIDER_ERROR"
    ALL_PROVIDERS_DOWN = "ALL_PROVIDERS_DOWN"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"


# =============================================================================
# Base Exception
# =============================================================================


class SpecificityException(Exception):
    """
    Base exception for all Specificity errors.

    Attributes:
        message: Human-readable error message.
        error_code: Machine-readable error code from ErrorCode enum.
    """

    def __init__(
        self,
        message: str,
        error_code: str = ErrorCode.SPECIFICITY_ERROR,
        **kwargs: Any,
    ) -> None:
        """
        Initialize the exception.

        Args:
            message: Human-readable error message.
            error_code: Machine-readable error code.
            **kwargs: Additional attributes to set on the exception.
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code

        for key, value in kwargs.items():
            setattr(self, key, value)


# =============================================================================
# ProviderError
# =============================================================================


class ProviderError(SpecificityException):
    """
    Exception for LLM provider issues.

    Raised by provider call functions when an upstream provider fails in a
    way that should count against that provider and trigger failover.

    Attributes:
        provider: Name of the provider (e.g., "openrouter", "groq").
        status_code: HTTP status code from the provider API (if applicable).
    """

    def __init__(
        self,
        message: str,
        provider: str,
        status_code: Optional[int] = None,
        error_code: str = ErrorCode.PROVIDER_ERROR,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, error_code, **kwargs)
        self.provider = provider
        self.status_code = status_code


# =============================================================================
# AllProvidersDownError
# =============================================================================


class AllProvidersDownError(SpecificityException):
    """
    Raised when no configured provider is eligible to serve a request.

    This is the single failure surfaced to callers when every provider is
    cooling down or has failed; it is never retried internally.

    Attributes:
        providers: Provider names that were considered.
        provider_errors: Last error message per attempted provider.
    """

    def __init__(
        self,
        message: str = "All providers are down",
        providers: Optional[list[str]] = None,
        provider_errors: Optional[dict[str, str]] = None,
        error_code: str = ErrorCode.ALL_PROVIDERS_DOWN,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, error_code, **kwargs)
        self.providers = providers or []
        self.provider_errors = provider_errors or {}


# =============================================================================
# ConfigurationError
# =============================================================================


class ConfigurationError(SpecificityException):
    """
    Exception for invalid component configuration.

    Note: Pydantic validates Settings fields; this covers values assembled
    in code (e.g., the provider list given to FailoverSelector).

    Attributes:
        field: Name of the offending configuration field.
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        error_code: str = ErrorCode.CONFIGURATION_ERROR,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, error_code, **kwargs)
        self.field = field

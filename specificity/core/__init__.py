"""
Core module for the Specificity resilience core.

This module contains configuration, exceptions, and shared utilities.
"""

from specificity.core.aggregates import approval_rate, average_load, safe_ratio
from specificity.core.config import (
    DEVELOPMENT_FAILOVER_CONFIG,
    PRODUCTION_FAILOVER_CONFIG,
    Environment,
    FailoverConfig,
    Settings,
    get_failover_config,
    get_settings,
)
from specificity.core.exceptions import (
    AllProvidersDownError,
    ConfigurationError,
    ErrorCode,
    ProviderError,
    SpecificityException,
)

__all__ = [
    # Config
    "Environment",
    "FailoverConfig",
    "PRODUCTION_FAILOVER_CONFIG",
    "DEVELOPMENT_FAILOVER_CONFIG",
    "Settings",
    "get_failover_config",
    "get_settings",
    # Exceptions
    "ErrorCode",
    "SpecificityException",
    "ProviderError",
    "AllProvidersDownError",
    "ConfigurationError",
    # Aggregates
    "safe_ratio",
    "approval_rate",
    "average_load",
]

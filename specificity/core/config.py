"""
Core configuration module for the Specificity resilience core.

This module provides centralized configuration management using Pydantic Settings.
All configuration is loaded from environment variables with the SPECIFICITY_ prefix.

Failover thresholds are environment-sensitive: development fails fast with a
short cooldown, production tolerates more noise and stays on a provider longer.
The selected FailoverConfig is a plain value threaded through constructors, it
is never read ad hoc from module globals.

Reference:
- GUIDELINES: Sinha pp. 193-195 - Pydantic BaseSettings pattern
- Release It! (Nygard): Circuit breaker thresholds and cooldowns
"""

from dataclasses import dataclass, replace
from enum import Enum
from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Environment(str, Enum):
    """Valid environment values."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


# =============================================================================
# Failover Configuration
# =============================================================================


@dataclass(frozen=True)
class FailoverConfig:
    """
    Provider failover thresholds.

    Attributes:
        max_failures: Consecutive failures before a provider is marked down
        cooldown_seconds: Seconds a down provider is excluded from selection
        failure_window_seconds: Trailing window over which failures count as related
        enabled: Whether automatic failover is enabled
    """

    max_failures: int
    cooldown_seconds: float
    failure_window_seconds: float
    enabled: bool = True


PRODUCTION_FAILOVER_CONFIG = FailoverConfig(
    max_failures=3,
    cooldown_seconds=60.0,
    failure_window_seconds=300.0,
    enabled=True,
)

DEVELOPMENT_FAILOVER_CONFIG = FailoverConfig(
    max_failures=2,
    cooldown_seconds=30.0,
    failure_window_seconds=180.0,
    enabled=True,
)


def get_failover_config(environment: str) -> FailoverConfig:
    """
    Get the failover preset for an environment.

    Only development uses the aggressive preset; staging and production
    share the conservative one.

    Args:
        environment: Deployment environment name

    Returns:
        FailoverConfig preset for the environment
    """
    if environment == Environment.DEVELOPMENT.value:
        return DEVELOPMENT_FAILOVER_CONFIG
    return PRODUCTION_FAILOVER_CONFIG


# =============================================================================
# Settings
# =============================================================================


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All fields use the SPECIFICITY_ prefix for environment variables.
    Example: SPECIFICITY_ENVIRONMENT=production
    """

    # =========================================================================
    # Service Configuration
    # =========================================================================
    service_name: str = Field(
        default="specificity-core",
        description="Name of the service for logging and identification",
    )
    version: str = Field(
        default="1.0.0",
        description="Service version reported by health endpoints",
    )
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )
    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
    )
    cors_origins: str = Field(
        default="",
        description="Comma-separated allowed CORS origins outside development",
    )

    # =========================================================================
    # Failover Overrides (unset fields fall back to the environment preset)
    # =========================================================================
    failover_enabled: Optional[bool] = Field(
        default=None,
        description="Override whether automatic failover is enabled",
    )
    failover_max_failures: Optional[int] = Field(
        default=None,
        ge=1,
        le=100,
        description="Override consecutive failures before a provider is marked down",
    )
    failover_cooldown_seconds: Optional[float] = Field(
        default=None,
        gt=0.0,
        le=3600.0,
        description="Override seconds a down provider is excluded",
    )
    failover_window_seconds: Optional[float] = Field(
        default=None,
        gt=0.0,
        le=86400.0,
        description="Override trailing failure window in seconds",
    )

    # =========================================================================
    # Query Metrics Configuration
    # =========================================================================
    metrics_retention_seconds: float = Field(
        default=300.0,
        gt=0.0,
        description="Seconds a query sample is retained before eviction",
    )
    slow_query_threshold_ms: float = Field(
        default=1000.0,
        gt=0.0,
        description="Queries slower than this are counted and reported as slow",
    )
    critical_query_threshold_ms: float = Field(
        default=3000.0,
        gt=0.0,
        description="Slow queries above this are reported at warning level",
    )

    # =========================================================================
    # Tracing Configuration
    # =========================================================================
    otlp_endpoint: Optional[str] = Field(
        default=None,
        description="OTLP exporter endpoint (console exporter when unset)",
    )

    model_config = {
        "env_prefix": "SPECIFICITY_",
        "case_sensitive": False,
        "extra": "ignore",
    }

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate and normalize log level."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {v}")
        return level

    def failover_config(self) -> FailoverConfig:
        """
        Resolve the failover configuration for this environment.

        Starts from the environment preset and applies any explicit overrides.

        Returns:
            Resolved FailoverConfig
        """
        config = get_failover_config(self.environment)
        overrides = {}
        if self.failover_enabled is not None:
            overrides["enabled"] = self.failover_enabled
        if self.failover_max_failures is not None:
            overrides["max_failures"] = self.failover_max_failures
        if self.failover_cooldown_seconds is not None:
            overrides["cooldown_seconds"] = self.failover_cooldown_seconds
        if self.failover_window_seconds is not None:
            overrides["failure_window_seconds"] = self.failover_window_seconds
        return replace(config, **overrides) if overrides else config

    def cors_origin_list(self) -> list[str]:
        """
        Get CORS allowed origins.

        Development allows all origins; other environments only allow the
        configured comma-separated list (empty blocks all cross-origin requests).
        """
        if self.environment == Environment.DEVELOPMENT.value:
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


# =============================================================================
# Settings Singleton
# =============================================================================


@lru_cache
def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Uses functools.lru_cache to ensure only one Settings instance is created.
    Tests call get_settings.cache_clear() after patching the environment.

    Returns:
        Settings: The application settings instance.
    """
    return Settings()

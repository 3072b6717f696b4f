"""Core configuration module for fork-merge-engine.

Loads settings from FORKMERGE_* prefixed environment variables using
Pydantic Settings.

Patterns applied:
- pydantic-settings BaseSettings (Pydantic v2 split)
- env_prefix = "FORKMERGE_" for namespace isolation
- @field_validator + @classmethod (Pydantic v2 pattern)
- @lru_cache for singleton pattern
- PEP 604 union syntax (X | None)
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from src.core.constants import (
    DEFAULT_ENVIRONMENT,
    DEFAULT_LOG_LEVEL,
    DEFAULT_ON_SCHEMA_CONFLICT,
    DEFAULT_PREFIX_CACHE_PROVIDERS,
    DEFAULT_SERVICE_NAME,
    DEFAULT_WARMUP,
)


class Settings(BaseSettings):
    """Application settings loaded from FORKMERGE_* environment variables.

    All environment variables must be prefixed with FORKMERGE_.
    Example: FORKMERGE_LOG_LEVEL=DEBUG, FORKMERGE_DEFAULT_WARMUP=first-branch

    Attributes:
        service_name: Service identifier for logging and tracing.
        environment: Deployment environment. Default: development.
        log_level: Logging verbosity. Default: INFO.
        default_warmup: Warmup used by cache-optimized forks that omit one.
        default_on_schema_conflict: Conflict behavior for forks that omit one.
        prefix_cache_providers: Providers whose cache is prefix-keyed.
        tracing_enabled: Whether setup_tracing() should be called at startup.
        otlp_endpoint: Optional OTLP gRPC endpoint for span export.
    """

    # =========================================================================
    # Core Settings
    # =========================================================================
    service_name: str = Field(
        default=DEFAULT_SERVICE_NAME,
        description="Service name for identification",
    )
    environment: Literal["development", "staging", "production"] = Field(
        default=DEFAULT_ENVIRONMENT,
        description="Deployment environment",
    )
    log_level: str = Field(
        default=DEFAULT_LOG_LEVEL,
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    # =========================================================================
    # Fork Settings
    # =========================================================================
    default_warmup: Literal["explicit", "first-branch", "none"] = Field(
        default=DEFAULT_WARMUP,
        description="Warmup strategy for cache-optimized forks without one",
    )
    default_on_schema_conflict: Literal["warn", "error", "allow"] = Field(
        default=DEFAULT_ON_SCHEMA_CONFLICT,
        description="Schema conflict behavior for forks without one",
    )
    prefix_cache_providers: list[str] = Field(
        default_factory=lambda: list(DEFAULT_PREFIX_CACHE_PROVIDERS),
        description="Providers whose cache reuse requires identical request shapes",
    )

    # =========================================================================
    # Observability Settings
    # =========================================================================
    tracing_enabled: bool = Field(
        default=False,
        description="Enable OpenTelemetry tracing",
    )
    otlp_endpoint: str | None = Field(
        default=None,
        description="OTLP exporter endpoint (e.g. http://localhost:4317)",
    )

    # =========================================================================
    # Pydantic v2 Model Configuration
    # =========================================================================
    model_config = {
        "env_prefix": "FORKMERGE_",
        "case_sensitive": False,
        "extra": "ignore",
    }

    # =========================================================================
    # Validators (Pydantic v2 pattern: @field_validator + @classmethod)
    # =========================================================================
    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate and normalize log level to uppercase.

        Args:
            v: Input log level string.

        Returns:
            Normalized uppercase log level.

        Raises:
            ValueError: If log level is not valid.
        """
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        normalized = v.upper()
        if normalized not in valid_levels:
            msg = f"log_level must be one of {valid_levels}, got '{v}'"
            raise ValueError(msg)
        return normalized

    @field_validator("prefix_cache_providers")
    @classmethod
    def normalize_providers(cls, v: list[str]) -> list[str]:
        """Lowercase provider names so comparisons are case-insensitive."""
        return [provider.strip().lower() for provider in v if provider.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get singleton Settings instance.

    Returns:
        Cached Settings instance.
    """
    return Settings()

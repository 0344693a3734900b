"""
Configuration management using pydantic-settings.

Loads configuration from environment variables and .env files.
Validates retry, cache and batch limits and provides typed access to settings.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from depver import __version__
from depver.exceptions import ConfigurationError
from depver.types import Ecosystem


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Registry:
        REGISTRY_API_BASE: Base URL of the deps.dev v3alpha API
        USER_AGENT: User-Agent header sent to the registry
        REQUEST_TIMEOUT_SECONDS: Per-attempt request timeout
        MAX_ATTEMPTS: Total attempts per request (including the first)
        RETRY_BASE_DELAY_SECONDS: Backoff base delay
        RETRY_MAX_DELAY_SECONDS: Backoff cap (before jitter)

    Cache:
        CACHE_MAX_ENTRIES: Maximum number of cached entries
        CACHE_TTL_OVERRIDES: JSON mapping of ecosystem -> TTL seconds

    Tools:
        BATCH_MAX_PACKAGES: Largest batch accepted by the tool layer

    Logging:
        LOG_LEVEL: Logging level
        LOG_FILE: Optional JSON-lines log file
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Registry
    REGISTRY_API_BASE: str = Field(
        default="https://api.deps.dev/v3alpha",
        description="Base URL of the deps.dev versions API",
    )
    USER_AGENT: str = Field(
        default=f"depver/{__version__}",
        description="User-Agent header sent with registry requests",
    )
    REQUEST_TIMEOUT_SECONDS: float = Field(
        default=10.0, gt=0.0, description="Per-attempt request timeout"
    )
    MAX_ATTEMPTS: int = Field(
        default=3, ge=1, le=10, description="Total attempts per registry request"
    )
    RETRY_BASE_DELAY_SECONDS: float = Field(
        default=0.5, ge=0.0, description="Exponential backoff base delay"
    )
    RETRY_MAX_DELAY_SECONDS: float = Field(
        default=8.0, ge=0.0, description="Exponential backoff cap"
    )

    # Cache
    CACHE_MAX_ENTRIES: int = Field(
        default=1000, ge=1, description="Maximum number of cached entries"
    )
    CACHE_TTL_OVERRIDES: dict[str, float] = Field(
        default_factory=dict,
        description="Per-ecosystem TTL overrides in seconds",
    )

    # Tools
    BATCH_MAX_PACKAGES: int = Field(
        default=50, ge=1, le=500, description="Maximum packages per batch call"
    )

    # Logging
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    LOG_FILE: Path | None = Field(default=None, description="JSON-lines log file")

    @field_validator("REGISTRY_API_BASE")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize the base URL so paths can be appended with '/'."""
        return v.rstrip("/")

    @field_validator("CACHE_TTL_OVERRIDES")
    @classmethod
    def validate_ttl_overrides(cls, v: dict[str, float]) -> dict[str, float]:
        """Ensure override keys are known ecosystems and TTLs are positive."""
        normalized: dict[str, float] = {}
        for key, ttl in v.items():
            ecosystem = Ecosystem.parse(key)
            if ttl <= 0:
                raise ValueError(f"TTL override for {ecosystem.value} must be positive")
            normalized[ecosystem.value] = float(ttl)
        return normalized

    @model_validator(mode="after")
    def validate_backoff_bounds(self) -> Settings:
        """Ensure the backoff base delay does not exceed its cap."""
        if self.RETRY_BASE_DELAY_SECONDS > self.RETRY_MAX_DELAY_SECONDS:
            raise ValueError(
                "RETRY_BASE_DELAY_SECONDS must not exceed RETRY_MAX_DELAY_SECONDS"
            )
        return self

    @property
    def ttl_overrides(self) -> dict[Ecosystem, float]:
        """TTL overrides keyed by Ecosystem."""
        return {Ecosystem(k): v for k, v in self.CACHE_TTL_OVERRIDES.items()}

    def display(self) -> dict[str, str | int | float | None]:
        """Return settings as a flat mapping for display."""
        return {
            "REGISTRY_API_BASE": self.REGISTRY_API_BASE,
            "USER_AGENT": self.USER_AGENT,
            "REQUEST_TIMEOUT_SECONDS": self.REQUEST_TIMEOUT_SECONDS,
            "MAX_ATTEMPTS": self.MAX_ATTEMPTS,
            "RETRY_BASE_DELAY_SECONDS": self.RETRY_BASE_DELAY_SECONDS,
            "RETRY_MAX_DELAY_SECONDS": self.RETRY_MAX_DELAY_SECONDS,
            "CACHE_MAX_ENTRIES": self.CACHE_MAX_ENTRIES,
            "CACHE_TTL_OVERRIDES": ", ".join(
                f"{k}={v:g}s" for k, v in sorted(self.CACHE_TTL_OVERRIDES.items())
            ) or None,
            "BATCH_MAX_PACKAGES": self.BATCH_MAX_PACKAGES,
            "LOG_LEVEL": self.LOG_LEVEL,
            "LOG_FILE": str(self.LOG_FILE) if self.LOG_FILE else None,
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton.

    Returns:
        Settings instance loaded from environment.

    Raises:
        ConfigurationError: If settings are invalid.
    """
    try:
        return Settings()
    except ValidationError as e:
        fields = [".".join(str(p) for p in err["loc"]) for err in e.errors()]
        raise ConfigurationError(
            f"Invalid configuration: {e.error_count()} error(s)",
            context={"fields": fields},
        ) from e


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing)."""
    get_settings.cache_clear()

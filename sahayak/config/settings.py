"""
Pydantic-based configuration settings for Sahayak.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CacheSettings(BaseSettings):
    """Settings for the multi-tier cache."""

    backend: Literal["memory", "file", "redis"] = "file"
    max_memory_items: int = Field(default=100, ge=1)
    eviction_fraction: float = Field(default=0.2, gt=0.0, le=1.0)
    sweep_interval_seconds: int = Field(default=3600, ge=1)
    storage_dir: Path = Field(default_factory=lambda: Path.home() / ".sahayak" / "cache")
    redis_url: str | None = None
    key_prefix: str = "cache_"
    secure_key: SecretStr | None = None

    @field_validator("key_prefix")
    @classmethod
    def validate_key_prefix(cls, v: str) -> str:
        """Persistent keys are listed by prefix, so it cannot be empty."""
        if not v:
            raise ValueError("key_prefix must not be empty")
        return v


class OrchestratorSettings(BaseSettings):
    """Settings for the request coordinator."""

    batch_delay_ms: int = Field(default=50, ge=0)
    global_refresh_interval_seconds: int = Field(default=300, ge=1)
    slow_operation_seconds: float = Field(default=5.0, gt=0)
    default_cache_expiry_seconds: int = Field(default=600, ge=1)


class RefreshSettings(BaseSettings):
    """Settings for background refresh."""

    interval_seconds: float = Field(default=120.0, gt=0)
    stale_after_seconds: float = Field(default=300.0, gt=0)


class ObservabilitySettings(BaseSettings):
    """Settings for logging and metrics."""

    log_level: Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_file: Path | None = None
    enable_metrics: bool = True
    event_log_level: Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "DEBUG"
    muted_events: list[str] = Field(default_factory=list)


class SahayakSettings(BaseSettings):
    """
    Main configuration settings for Sahayak.

    Configuration can be provided via:
    - Environment variables with SAHAYAK_ prefix (nested with ``__``)
    - .env file in current directory
    - Direct instantiation with kwargs

    Example:
        ```python
        settings = SahayakSettings()

        # SAHAYAK_CACHE__MAX_MEMORY_ITEMS=250
        settings = SahayakSettings(cache=CacheSettings(backend="memory"))
        ```
    """

    model_config = SettingsConfigDict(
        env_prefix="SAHAYAK_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    environment: Literal["dev", "test", "prod"] = "dev"
    debug: bool = False

    cache: CacheSettings = Field(default_factory=CacheSettings)
    orchestrator: OrchestratorSettings = Field(default_factory=OrchestratorSettings)
    refresh: RefreshSettings = Field(default_factory=RefreshSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "prod"

    def to_dict(self) -> dict:
        """Convert settings to dictionary."""
        return self.model_dump()


@lru_cache
def get_settings(env_file: str | None = None) -> SahayakSettings:
    """
    Get cached settings instance.

    To reload settings, clear the cache with `get_settings.cache_clear()`.

    Args:
        env_file: Optional path to .env file

    Returns:
        Settings instance
    """
    if env_file:
        return SahayakSettings(_env_file=env_file)
    return SahayakSettings()


def load_settings_from_toml(toml_path: Path) -> SahayakSettings:
    """
    Load settings from TOML file.

    Args:
        toml_path: Path to TOML configuration file

    Returns:
        Settings instance
    """
    import tomllib

    with open(toml_path, "rb") as f:
        config_dict = tomllib.load(f)

    return SahayakSettings(**config_dict)

"""
Configuration management for Sahayak.

Uses Pydantic BaseSettings for type-safe, validated configuration
with support for environment variables, .env files, and TOML.
"""

from sahayak.config.profiles import (
    Profile,
    get_profile,
    get_settings_for_profile,
    merge_settings,
)
from sahayak.config.settings import (
    CacheSettings,
    ObservabilitySettings,
    OrchestratorSettings,
    RefreshSettings,
    SahayakSettings,
    get_settings,
    load_settings_from_toml,
)

__all__ = [
    "SahayakSettings",
    "CacheSettings",
    "OrchestratorSettings",
    "RefreshSettings",
    "ObservabilitySettings",
    "get_settings",
    "load_settings_from_toml",
    "Profile",
    "get_profile",
    "get_settings_for_profile",
    "merge_settings",
]

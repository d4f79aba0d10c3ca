"""
Configuration profiles for different environments.
"""

import os
from enum import Enum
from typing import Any

from sahayak.config.settings import (
    CacheSettings,
    ObservabilitySettings,
    SahayakSettings,
)


class Profile(str, Enum):
    """Configuration profiles."""

    DEVELOPMENT = "dev"
    PRODUCTION = "prod"
    TEST = "test"


def get_profile() -> Profile:
    """
    Get current configuration profile from environment.

    Checks SAHAYAK_ENVIRONMENT or ENV environment variables.
    Falls back to development profile.
    """
    env = os.getenv("SAHAYAK_ENVIRONMENT") or os.getenv("ENV") or "dev"

    try:
        return Profile(env.lower())
    except ValueError:
        return Profile.DEVELOPMENT


def get_development_settings() -> SahayakSettings:
    """
    Get settings for development environment.

    Returns:
        Development settings with:
        - Debug mode enabled
        - Verbose logging
        - File-backed persistent cache
    """
    return SahayakSettings(
        environment="dev",
        debug=True,
        cache=CacheSettings(backend="file"),
        observability=ObservabilitySettings(log_level="DEBUG"),
    )


def get_production_settings() -> SahayakSettings:
    """
    Get settings for production environment.

    Returns:
        Production settings with Redis persistence and warning-level logs.
    """
    return SahayakSettings(
        environment="prod",
        debug=False,
        cache=CacheSettings(backend="redis"),
        observability=ObservabilitySettings(log_level="WARNING"),
    )


def get_test_settings() -> SahayakSettings:
    """
    Get settings for test environment.

    Returns:
        Test settings with:
        - In-memory persistent tiers
        - Minimal logging
        - Metrics disabled
    """
    return SahayakSettings(
        environment="test",
        debug=True,
        cache=CacheSettings(backend="memory"),
        observability=ObservabilitySettings(log_level="ERROR", enable_metrics=False),
    )


def get_settings_for_profile(profile: Profile | str) -> SahayakSettings:
    """
    Get settings for specific profile.

    Args:
        profile: Configuration profile

    Returns:
        Settings instance for the profile
    """
    if isinstance(profile, str):
        profile = Profile(profile)

    profile_map = {
        Profile.DEVELOPMENT: get_development_settings,
        Profile.PRODUCTION: get_production_settings,
        Profile.TEST: get_test_settings,
    }

    return profile_map[profile]()


def merge_settings(
    base: SahayakSettings,
    overrides: dict[str, Any],
) -> SahayakSettings:
    """
    Merge settings with overrides.

    Nested keys use the same ``__`` delimiter as environment variables,
    e.g. ``{"cache__max_memory_items": 50}``.

    Args:
        base: Base settings
        overrides: Dictionary of setting overrides

    Returns:
        New settings instance with overrides applied
    """
    base_dict = base.model_dump()

    for key, value in overrides.items():
        parts = key.split("__")
        current = base_dict
        for part in parts[:-1]:
            current = current.setdefault(part, {})
        current[parts[-1]] = value

    return SahayakSettings(**base_dict)

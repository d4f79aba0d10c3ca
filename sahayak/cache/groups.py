"""
Named cache groups for bulk invalidation.

A pattern ending in ``*`` invalidates every key with that prefix; any
other pattern is an exact key.
"""

from typing import Iterable

from loguru import logger

WILDCARD = "*"

DEFAULT_GROUPS: dict[str, set[str]] = {
    "user_profile": {"profile_basic", "profile_detailed", "user_settings"},
    "dashboard": {"dashboard_overview", "quick_stats", "recent_activities"},
    "chat": {"chat_sessions", "chat_history_*"},
    "planner": {"weekly_plans_*", "planning_templates", "suggestions_*"},
    "content": {"content_templates", "generation_history"},
}


def is_prefix_pattern(pattern: str) -> bool:
    return pattern.endswith(WILDCARD)


def pattern_matches(pattern: str, key: str) -> bool:
    """Check whether a single group pattern covers a key."""
    if is_prefix_pattern(pattern):
        return key.startswith(pattern[: -len(WILDCARD)])
    return key == pattern


class CacheGroups:
    """Registry mapping a feature area to its key patterns."""

    def __init__(self, groups: dict[str, Iterable[str]] | None = None, include_defaults: bool = True):
        self._groups: dict[str, set[str]] = {}
        if include_defaults:
            for name, patterns in DEFAULT_GROUPS.items():
                self._groups[name] = set(patterns)
        for name, patterns in (groups or {}).items():
            self.register(name, patterns)

    def register(self, name: str, patterns: Iterable[str]) -> None:
        """Add patterns to a group, creating it if needed."""
        self._groups.setdefault(name, set()).update(patterns)
        logger.debug(f"Cache group '{name}' -> {sorted(self._groups[name])}")

    def get(self, name: str) -> frozenset[str]:
        """Patterns for a group; empty for unknown groups."""
        return frozenset(self._groups.get(name, ()))

    def names(self) -> list[str]:
        return sorted(self._groups)

    def groups_for_key(self, key: str) -> list[str]:
        """Every group whose patterns cover `key`."""
        return sorted(
            name
            for name, patterns in self._groups.items()
            if any(pattern_matches(p, key) for p in patterns)
        )

    def __contains__(self, name: str) -> bool:
        return name in self._groups

"""
Time helpers.

Components take a `Clock` so tests can drive time explicitly.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def to_timedelta(value: timedelta | int | float | None) -> timedelta | None:
    """Accept a timedelta or a number of seconds."""
    if value is None or isinstance(value, timedelta):
        return value
    return timedelta(seconds=value)

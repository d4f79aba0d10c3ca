"""
Utility modules for Sahayak.
"""

from sahayak.utils.clock import Clock, to_timedelta, utcnow
from sahayak.utils.logging import configure_logging, get_logger

__all__ = ["Clock", "configure_logging", "get_logger", "to_timedelta", "utcnow"]

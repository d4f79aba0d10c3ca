"""
Runtime wiring for Sahayak.
"""

from sahayak.core.container import Container
from sahayak.core.runtime import SahayakRuntime, build_stores

__all__ = ["Container", "SahayakRuntime", "build_stores"]

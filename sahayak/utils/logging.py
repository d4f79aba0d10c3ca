"""
Logging utilities for Sahayak.
"""

import sys
from pathlib import Path
from typing import Optional

from loguru import logger

DEFAULT_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)


def configure_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    rotation: str = "10 MB",
    retention: str = "7 days",
    format: Optional[str] = None,
):
    """
    Install Sahayak's log sinks.

    Replaces loguru's default handler with a colorized stderr sink and,
    when `log_file` is given, a rotating compressed file sink.

    Args:
        level: Log level (TRACE, DEBUG, INFO, WARNING, ERROR)
        log_file: Path to log file
        rotation: Log rotation size/time
        retention: Log retention period
        format: Log format string

    Returns:
        The configured loguru logger
    """
    logger.remove()

    format = format or DEFAULT_FORMAT

    logger.add(
        sys.stderr,
        format=format,
        level=level,
        colorize=True,
    )

    if log_file:
        logger.add(
            log_file,
            format=format,
            level=level,
            rotation=rotation,
            retention=retention,
            compression="zip",
        )

    return logger


def get_logger(name: Optional[str] = None):
    """Get a logger bound to a component name."""
    if name:
        return logger.bind(component=name)
    return logger

"""
Tests for time and logging helpers.
"""

import sys
from datetime import timedelta, timezone

import pytest
from loguru import logger

from sahayak.utils import configure_logging, get_logger, to_timedelta, utcnow


class TestClock:
    def test_utcnow_is_aware(self):
        assert utcnow().tzinfo is timezone.utc

    @pytest.mark.parametrize(
        "value,expected",
        [
            (None, None),
            (90, timedelta(seconds=90)),
            (0.05, timedelta(milliseconds=50)),
            (timedelta(minutes=2), timedelta(minutes=2)),
        ],
    )
    def test_to_timedelta(self, value, expected):
        assert to_timedelta(value) == expected


class TestLogging:
    @pytest.fixture(autouse=True)
    def restore_default_sink(self):
        yield
        logger.remove()
        logger.add(sys.stderr)

    def test_file_sink_receives_bound_messages(self, tmp_path):
        log_file = tmp_path / "sahayak.log"
        configure_logging(level="DEBUG", log_file=log_file, format="{extra} {message}")

        get_logger("coordinator").info("dashboard loaded")

        content = log_file.read_text()
        assert "dashboard loaded" in content
        assert "coordinator" in content

    def test_level_filters_messages(self, tmp_path):
        log_file = tmp_path / "sahayak.log"
        configure_logging(level="WARNING", log_file=log_file)

        logger.info("hidden")
        logger.warning("shown")

        content = log_file.read_text()
        assert "shown" in content
        assert "hidden" not in content


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

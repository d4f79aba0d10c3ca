"""
Tests for the dependency injection container.
"""

import pytest

from sahayak.core import Container


class Clock:
    def __init__(self):
        self.name = "clock"


class Cache:
    def __init__(self, clock: Clock):
        self.clock = clock


class Coordinator:
    def __init__(self, cache: Cache, batch_delay_ms: int = 50):
        self.cache = cache
        self.batch_delay_ms = batch_delay_ms


def build_clock() -> Clock:
    clock = Clock()
    clock.name = "factory"
    return clock


class TestContainer:
    """Test DI container functionality."""

    @pytest.fixture
    def container(self):
        return Container()

    def test_singleton_is_reused(self, container):
        container.register_singleton(Clock)

        assert container.resolve(Clock) is container.resolve(Clock)

    def test_factory_builds_every_time(self, container):
        container.register_factory(Clock, build_clock)

        first = container.resolve(Clock)
        assert first.name == "factory"
        assert first is not container.resolve(Clock)

    def test_instance(self, container):
        clock = Clock()
        container.register_instance(Clock, clock)

        assert container.resolve(Clock) is clock

    def test_constructor_injection(self, container):
        container.register_singleton(Clock)
        container.register_singleton(Cache)
        container.register_singleton(Coordinator)

        coordinator = container.resolve(Coordinator)

        assert coordinator.cache.clock is container.resolve(Clock)
        assert coordinator.batch_delay_ms == 50

    def test_unregistered_type(self, container):
        with pytest.raises(ValueError, match="No registration found for: Clock"):
            container.resolve(Clock)

    def test_has_and_clear(self, container):
        container.register_singleton(Clock)
        container.register_factory(Cache, Cache)

        assert container.has(Clock)
        assert container.get_registrations() == {
            "instances": [],
            "singletons": ["Clock"],
            "factories": ["Cache"],
        }

        container.clear()
        assert not container.has(Clock)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

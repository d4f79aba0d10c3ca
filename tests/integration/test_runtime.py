"""
Integration tests for the wired runtime.
"""

from datetime import timedelta

import pytest
from cryptography.fernet import Fernet
from prometheus_client import CollectorRegistry

from sahayak.cache import CacheManager, OfflineFirstCache
from sahayak.config import merge_settings
from sahayak.config.profiles import get_test_settings
from sahayak.consumers import ConsumerState, OptimizedConsumer
from sahayak.core import SahayakRuntime, build_stores
from sahayak.exceptions import ConfigurationError
from sahayak.orchestration import RequestCoordinator
from sahayak.storage import EncryptedKeyValueStore, FileKeyValueStore
from sahayak.utils import utcnow


class IdleConsumer(OptimizedConsumer[ConsumerState]):
    def __init__(self, coordinator, staleness=None):
        super().__init__(coordinator, "idle", ConsumerState(), staleness=staleness)

    async def perform_silent_refresh(self):
        pass


@pytest.fixture
def settings():
    return get_test_settings()


class TestBuildStores:
    """Backend selection."""

    def test_memory_without_secure_key(self, settings):
        plain, secure = build_stores(settings)

        assert plain is not None
        assert secure is None

    def test_file_backend(self, settings, tmp_path):
        settings = merge_settings(settings, {"cache__backend": "file", "cache__storage_dir": tmp_path})

        plain, _ = build_stores(settings)

        assert isinstance(plain, FileKeyValueStore)

    def test_secure_key_enables_secure_tier(self, settings):
        settings = merge_settings(settings, {"cache__secure_key": Fernet.generate_key().decode()})

        _, secure = build_stores(settings)

        assert isinstance(secure, EncryptedKeyValueStore)

    def test_invalid_secure_key(self, settings):
        settings = merge_settings(settings, {"cache__secure_key": "too-short"})

        with pytest.raises(ConfigurationError):
            build_stores(settings)

    def test_redis_requires_url(self, settings):
        settings = merge_settings(settings, {"cache__backend": "redis"})

        with pytest.raises(ConfigurationError):
            build_stores(settings)


class TestSahayakRuntime:
    """End to end through the wired components."""

    @pytest.mark.asyncio
    async def test_coordinated_call_through_runtime(self, settings):
        runtime = SahayakRuntime.from_settings(settings)
        calls = []

        async def fetch():
            calls.append(1)
            return {"lessons": 3}

        async with runtime:
            first = await runtime.coordinator.execute_optimized_call("dash", fetch, cache_key="dash")
            second = await runtime.coordinator.execute_optimized_call("dash", fetch, cache_key="dash")

        assert first == second == {"lessons": 3}
        assert calls == [1]
        assert runtime.metrics is None

    @pytest.mark.asyncio
    async def test_metrics_enabled(self, settings):
        settings = merge_settings(settings, {"observability__enable_metrics": True})
        registry = CollectorRegistry()
        runtime = SahayakRuntime.from_settings(settings, registry=registry)

        async def fetch():
            return 1

        async with runtime:
            await runtime.coordinator.execute_optimized_call("op", fetch)

        assert registry.get_sample_value("sahayak_operations_total", {"result": "success"}) == 1

    @pytest.mark.asyncio
    async def test_secure_round_trip(self, settings):
        settings = merge_settings(settings, {"cache__secure_key": Fernet.generate_key().decode()})
        runtime = SahayakRuntime.from_settings(settings)

        async with runtime:
            await runtime.cache.store("auth_token", "abc", secure=True)
            assert await runtime.cache.get("auth_token", secure=True) == "abc"

    @pytest.mark.asyncio
    async def test_muted_events_never_reach_subscribers(self, settings):
        settings = merge_settings(settings, {"observability__muted_events": ["CacheMissEvent"]})
        runtime = SahayakRuntime.from_settings(settings)
        seen = []

        async def record(event):
            seen.append(type(event).__name__)

        runtime.event_bus.subscribe_all(record)

        async def fetch():
            return 1

        async with runtime:
            await runtime.coordinator.execute_optimized_call("op", fetch, cache_key="op")

        assert "CacheMissEvent" not in seen
        assert "OperationCompletedEvent" in seen

    @pytest.mark.asyncio
    async def test_built_consumer_uses_configured_staleness(self, settings):
        loaded = utcnow() - timedelta(minutes=2)
        default_runtime = SahayakRuntime.from_settings(settings)
        eager_runtime = SahayakRuntime.from_settings(
            merge_settings(settings, {"refresh__stale_after_seconds": 60})
        )

        default_consumer = default_runtime.build_consumer(IdleConsumer)
        eager_consumer = eager_runtime.build_consumer(IdleConsumer)
        for consumer in (default_consumer, eager_consumer):
            consumer.emit(ConsumerState(last_updated=loaded))

        assert eager_consumer.staleness is eager_runtime.staleness
        assert eager_consumer.coordinator is eager_runtime.coordinator
        assert eager_consumer.needs_refresh
        assert not default_consumer.needs_refresh

        await default_consumer.close()
        await eager_consumer.close()
        await default_runtime.dispose()
        await eager_runtime.dispose()

    def test_container_resolves_components(self, settings):
        runtime = SahayakRuntime.from_settings(settings)

        assert runtime.container.resolve(RequestCoordinator) is runtime.coordinator
        assert runtime.container.resolve(CacheManager) is runtime.cache
        offline = runtime.container.resolve(OfflineFirstCache)
        assert offline.cache is runtime.cache

    @pytest.mark.asyncio
    async def test_start_is_idempotent_and_dispose_stops_bus(self, settings):
        runtime = SahayakRuntime.from_settings(settings)

        await runtime.start()
        await runtime.start()
        await runtime.dispose()

        assert runtime.coordinator.registered_consumers == frozenset()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

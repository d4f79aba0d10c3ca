"""
Tests for the request coordinator.
"""

import asyncio
from datetime import timedelta

import pytest
from prometheus_client import CollectorRegistry

from sahayak.events import (
    BackgroundRefreshFailedEvent,
    CacheHitEvent,
    CacheMissEvent,
    DuplicateOperationEvent,
    OperationCompletedEvent,
    OperationFailedEvent,
    OperationStartedEvent,
)
from sahayak.exceptions import DuplicateOperationError
from sahayak.observability import CoordinatorMetrics
from sahayak.orchestration import RequestCoordinator


class Remote:
    """Counts calls to a fake remote endpoint."""

    def __init__(self, result="ok", error: Exception | None = None):
        self.result = result
        self.error = error
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return self.result


class TestCachedCalls:
    """Test read-through caching."""

    @pytest.mark.asyncio
    async def test_cached_value_short_circuits(self, coordinator, cache):
        await cache.store("dash_stats", {"lessons": 12})
        remote = Remote()

        result = await coordinator.execute("dash_stats", remote, cache_key="dash_stats")

        assert result.from_cache is True
        assert result.data == {"lessons": 12}
        assert remote.calls == 0

    @pytest.mark.asyncio
    async def test_miss_calls_remote_and_stores(self, coordinator, cache):
        remote = Remote({"lessons": 3})

        first = await coordinator.execute("dash_stats", remote, cache_key="dash_stats")
        second = await coordinator.execute("dash_stats", remote, cache_key="dash_stats")

        assert first.from_cache is False
        assert second.from_cache is True
        assert remote.calls == 1
        assert await cache.get("dash_stats") == {"lessons": 3}

    @pytest.mark.asyncio
    async def test_cache_expiry(self, coordinator, clock):
        remote = Remote()

        await coordinator.execute_optimized_call("op", remote, cache_key="k", cache_expiry=60)
        clock.advance(seconds=61)
        await coordinator.execute_optimized_call("op", remote, cache_key="k", cache_expiry=60)

        assert remote.calls == 2

    @pytest.mark.asyncio
    async def test_default_expiry_is_ten_minutes(self, coordinator, cache, clock):
        await coordinator.execute_optimized_call("op", Remote(), cache_key="k")

        entry = cache.peek_entry("k")
        assert entry.expiry - entry.created_at == timedelta(minutes=10)

    @pytest.mark.asyncio
    async def test_caching_disabled(self, coordinator, cache):
        remote = Remote()

        await coordinator.execute_optimized_call("op", remote, enable_caching=False, cache_key="k")
        await coordinator.execute_optimized_call("op", remote, enable_caching=False, cache_key="k")

        assert remote.calls == 2
        assert await cache.get("k") is None

    @pytest.mark.asyncio
    async def test_no_cache_key_means_no_caching(self, coordinator):
        remote = Remote()

        await coordinator.execute_optimized_call("op", remote)
        await coordinator.execute_optimized_call("op", remote)

        assert remote.calls == 2


class TestInFlightRegistry:
    """At most one in-flight call per operation key."""

    @pytest.mark.asyncio
    async def test_same_tick_duplicate_rejected(self, coordinator):
        gate = asyncio.Event()

        async def slow():
            await gate.wait()
            return "done"

        first = asyncio.create_task(coordinator.execute_optimized_call("load", slow))
        second = asyncio.create_task(coordinator.execute_optimized_call("load", slow))
        await asyncio.sleep(0)

        assert coordinator.is_in_flight("load")
        with pytest.raises(DuplicateOperationError) as exc_info:
            await second
        assert exc_info.value.operation_key == "load"

        gate.set()
        assert await first == "done"
        assert not coordinator.is_in_flight("load")

    @pytest.mark.asyncio
    async def test_different_keys_run_concurrently(self, coordinator):
        results = await asyncio.gather(
            coordinator.execute_optimized_call("a", Remote("A")),
            coordinator.execute_optimized_call("b", Remote("B")),
        )

        assert results == ["A", "B"]

    @pytest.mark.asyncio
    async def test_failure_propagates_and_deregisters(self, coordinator):
        error = ValueError("backend down")

        with pytest.raises(ValueError) as exc_info:
            await coordinator.execute_optimized_call("op", Remote(error=error))

        assert exc_info.value is error
        assert coordinator.in_flight_operations == frozenset()

        assert await coordinator.execute_optimized_call("op", Remote("retry")) == "retry"

    @pytest.mark.asyncio
    async def test_cancellation_deregisters(self, coordinator):
        started = asyncio.Event()

        async def hang():
            started.set()
            await asyncio.Event().wait()

        task = asyncio.create_task(coordinator.execute_optimized_call("op", hang))
        await started.wait()
        assert coordinator.is_in_flight("op")

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert not coordinator.is_in_flight("op")

    @pytest.mark.asyncio
    async def test_failed_call_is_not_cached(self, coordinator, cache):
        with pytest.raises(RuntimeError):
            await coordinator.execute_optimized_call("op", Remote(error=RuntimeError("x")), cache_key="k")

        assert await cache.get("k") is None


class TestEventsAndMetrics:
    """Lifecycle events, prometheus metrics and stats."""

    @pytest.mark.asyncio
    async def test_event_sequence_for_cache_miss(self, coordinator, event_bus):
        received = []

        async def handler(event):
            received.append(type(event))

        event_bus.subscribe_all(handler)

        await coordinator.execute_optimized_call("op", Remote(), cache_key="k")
        await coordinator.execute_optimized_call("op", Remote(), cache_key="k")

        assert received == [
            OperationStartedEvent,
            CacheMissEvent,
            OperationCompletedEvent,
            OperationStartedEvent,
            CacheHitEvent,
            OperationCompletedEvent,
        ]

    @pytest.mark.asyncio
    async def test_failure_and_duplicate_events(self, coordinator, event_bus):
        failed = []
        duplicates = []

        async def on_failed(event):
            failed.append(event)

        async def on_duplicate(event):
            duplicates.append(event)

        event_bus.subscribe(OperationFailedEvent, on_failed)
        event_bus.subscribe(DuplicateOperationEvent, on_duplicate)

        with pytest.raises(KeyError):
            await coordinator.execute_optimized_call("bad", Remote(error=KeyError("x")))

        gate = asyncio.Event()

        async def slow():
            await gate.wait()

        first = asyncio.create_task(coordinator.execute_optimized_call("slow", slow))
        await asyncio.sleep(0)
        with pytest.raises(DuplicateOperationError):
            await coordinator.execute_optimized_call("slow", slow)
        gate.set()
        await first

        assert failed[0].operation_key == "bad"
        assert failed[0].error_type == "KeyError"
        assert duplicates[0].operation_key == "slow"

    @pytest.mark.asyncio
    async def test_prometheus_metrics(self, coordinator, metrics):
        registry = metrics.registry

        await coordinator.execute_optimized_call("op", Remote(), cache_key="k")
        await coordinator.execute_optimized_call("op", Remote(), cache_key="k")
        with pytest.raises(ValueError):
            await coordinator.execute_optimized_call("bad", Remote(error=ValueError()))

        assert registry.get_sample_value("sahayak_operations_total", {"result": "success"}) == 1
        assert registry.get_sample_value("sahayak_operations_total", {"result": "cache_hit"}) == 1
        assert registry.get_sample_value("sahayak_operations_total", {"result": "error"}) == 1
        assert registry.get_sample_value("sahayak_cache_lookups_total", {"result": "miss"}) == 1
        assert registry.get_sample_value("sahayak_in_flight_operations") == 0
        assert b"sahayak_operations_total" in metrics.export()

    @pytest.mark.asyncio
    async def test_stats_and_monitor(self, coordinator):
        await coordinator.execute_optimized_call("op", Remote(), cache_key="k")
        await coordinator.execute_optimized_call("op", Remote(), cache_key="k")
        with pytest.raises(ValueError):
            await coordinator.execute_optimized_call("bad", Remote(error=ValueError()))

        stats = coordinator.get_stats()

        assert stats.total_calls == 3
        assert stats.successful_calls == 2
        assert stats.failed_calls == 1
        assert stats.cache_hits == 1
        assert stats.in_flight_operations == 0

        report = coordinator.monitor.get_performance_report()
        assert report["endpoints"]["op"]["success_count"] == 1
        assert report["endpoints"]["bad"]["error_count"] == 1
        assert report["cache_hits"] == 1


class TestBatching:
    """Per-endpoint debounced batches."""

    @pytest.mark.asyncio
    async def test_requests_in_window_run_together(self, coordinator):
        executed = []

        def request(n):
            async def call():
                executed.append(n)
                return n * 10

            return call

        tasks = [asyncio.create_task(coordinator.batch_request("lessons", request(n))) for n in range(3)]
        await asyncio.sleep(0)

        assert executed == []
        assert coordinator.get_stats().active_batches == 1

        assert await asyncio.gather(*tasks) == [0, 10, 20]
        assert sorted(executed) == [0, 1, 2]
        assert coordinator.get_stats().active_batches == 0

    @pytest.mark.asyncio
    async def test_each_caller_gets_its_own_outcome(self, coordinator):
        async def good():
            return "fine"

        async def bad():
            raise LookupError("missing lesson")

        results = await asyncio.gather(
            coordinator.batch_request("lessons", good),
            coordinator.batch_request("lessons", bad),
            coordinator.batch_request("lessons", good),
            return_exceptions=True,
        )

        assert results[0] == "fine"
        assert isinstance(results[1], LookupError)
        assert results[2] == "fine"

    @pytest.mark.asyncio
    async def test_endpoints_batch_separately(self, coordinator):
        async def call():
            return 1

        tasks = [
            asyncio.create_task(coordinator.batch_request("a", call)),
            asyncio.create_task(coordinator.batch_request("b", call)),
        ]
        await asyncio.sleep(0)

        assert coordinator.get_stats().active_batches == 2
        await asyncio.gather(*tasks)

    @pytest.mark.asyncio
    async def test_dispose_cancels_pending_batch(self, coordinator):
        async def call():
            return 1

        task = asyncio.create_task(coordinator.batch_request("a", call, batch_delay=10))
        await asyncio.sleep(0)

        await coordinator.dispose()

        with pytest.raises(asyncio.CancelledError):
            await task


class TestBackgroundRefreshRegistration:
    """Consumer registration and global refresh."""

    @pytest.mark.asyncio
    async def test_register_and_unregister(self, coordinator, scheduler):
        async def refresh():
            pass

        coordinator.register_for_background_refresh("dashboard", refresh)

        assert scheduler.is_scheduled("dashboard")
        assert coordinator.get_stats().registered_consumers == 1

        coordinator.unregister_from_background_refresh("dashboard")

        assert not scheduler.is_scheduled("dashboard")
        assert coordinator.registered_consumers == frozenset()

    @pytest.mark.asyncio
    async def test_refresh_all_isolates_failures(self, coordinator, event_bus, metrics):
        refreshed = []
        failures = []

        async def good():
            refreshed.append("planner")

        async def bad():
            raise ConnectionError("offline")

        async def on_failure(event):
            failures.append(event)

        event_bus.subscribe(BackgroundRefreshFailedEvent, on_failure)
        coordinator.register_for_background_refresh("planner", good)
        coordinator.register_for_background_refresh("chat", bad)

        await coordinator.refresh_all()

        assert refreshed == ["planner"]
        assert failures[0].consumer_id == "chat"
        assert failures[0].error_type == "ConnectionError"
        assert metrics.registry.get_sample_value("sahayak_background_refresh_failures_total") == 1
        assert coordinator.registered_consumers == frozenset({"planner", "chat"})

    @pytest.mark.asyncio
    async def test_refresh_all_respects_predicate(self, coordinator):
        refreshed = []

        async def refresh():
            refreshed.append(True)

        coordinator.register_for_background_refresh("content", refresh, should_refresh=lambda: False)

        await coordinator.refresh_all()

        assert refreshed == []

    @pytest.mark.asyncio
    async def test_global_refresh_timer(self, cache):
        coordinator = RequestCoordinator(
            cache,
            metrics=CoordinatorMetrics(CollectorRegistry()),
            global_refresh_interval=0.01,
        )
        refreshed = asyncio.Event()

        async def refresh():
            refreshed.set()

        # Long per-consumer interval: only the global timer can fire in time
        coordinator.register_for_background_refresh("dashboard", refresh, interval=3600)
        await coordinator.start()
        try:
            await asyncio.wait_for(refreshed.wait(), timeout=2)
        finally:
            await coordinator.dispose()

        assert not coordinator.scheduler.is_scheduled("dashboard")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

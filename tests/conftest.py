"""
Shared fixtures for Sahayak tests.
"""

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from prometheus_client import CollectorRegistry

from sahayak.cache import CacheManager
from sahayak.events import EventBus
from sahayak.observability import CoordinatorMetrics
from sahayak.orchestration import BackgroundRefreshScheduler, RequestCoordinator
from sahayak.storage import EncryptedKeyValueStore, InMemoryKeyValueStore


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def plain_store():
    return InMemoryKeyValueStore("plain")


@pytest.fixture
def secure_inner():
    return InMemoryKeyValueStore("secure")


@pytest.fixture
def secure_store(secure_inner):
    return EncryptedKeyValueStore(secure_inner, EncryptedKeyValueStore.generate_key())


@pytest.fixture
def cache(plain_store, secure_store, clock):
    return CacheManager(plain_store, secure_store=secure_store, max_memory_items=10, clock=clock)


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def metrics():
    return CoordinatorMetrics(CollectorRegistry())


@pytest.fixture
def scheduler():
    # Long interval: tests drive refreshes with tick()
    return BackgroundRefreshScheduler(default_interval=3600)


@pytest_asyncio.fixture
async def coordinator(cache, event_bus, metrics, scheduler):
    coordinator = RequestCoordinator(
        cache,
        event_bus=event_bus,
        metrics=metrics,
        scheduler=scheduler,
        batch_delay=0.01,
    )
    yield coordinator
    await coordinator.dispose()

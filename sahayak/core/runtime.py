"""
Composition root.

`SahayakRuntime.from_settings` wires stores, cache, monitor, event bus,
metrics and coordinator from one settings object. Applications create a
runtime at startup and build consumers with `build_consumer`.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Optional, TypeVar

from loguru import logger
from prometheus_client import CollectorRegistry

from sahayak.cache.groups import CacheGroups
from sahayak.cache.manager import CacheManager
from sahayak.cache.offline_first import OfflineFirstCache
from sahayak.config.settings import SahayakSettings
from sahayak.core.container import Container
from sahayak.events.bus import EventBus
from sahayak.events.middleware import EventLogMiddleware, EventTypeFilter
from sahayak.exceptions import ConfigurationError
from sahayak.interfaces.storage import KeyValueStore
from sahayak.monitoring.performance import PerformanceMonitor
from sahayak.observability.metrics import CoordinatorMetrics
from sahayak.orchestration.coordinator import RequestCoordinator
from sahayak.orchestration.refresh import BackgroundRefreshScheduler, StalenessPolicy
from sahayak.storage.file import FileKeyValueStore
from sahayak.storage.memory import InMemoryKeyValueStore
from sahayak.storage.redis_store import RedisKeyValueStore
from sahayak.storage.secure import EncryptedKeyValueStore
from sahayak.utils.logging import configure_logging

C = TypeVar("C")


def build_stores(settings: SahayakSettings) -> tuple[KeyValueStore, Optional[KeyValueStore]]:
    """
    Build the plain and secure persistent stores for the configured backend.

    The secure store exists only when a secure key is configured; it
    encrypts into a separate namespace of the same backend.

    Raises:
        ConfigurationError: If the redis backend has no URL
    """
    cache = settings.cache

    if cache.backend == "memory":
        plain: KeyValueStore = InMemoryKeyValueStore("plain")
        secure_inner: KeyValueStore = InMemoryKeyValueStore("secure")
    elif cache.backend == "file":
        plain = FileKeyValueStore(cache.storage_dir / "plain")
        secure_inner = FileKeyValueStore(cache.storage_dir / "secure")
    elif cache.backend == "redis":
        if not cache.redis_url:
            raise ConfigurationError("Redis cache backend requires cache.redis_url")
        plain = RedisKeyValueStore.from_url(cache.redis_url, namespace="sahayak:plain:")
        secure_inner = RedisKeyValueStore.from_url(cache.redis_url, namespace="sahayak:secure:")
    else:
        raise ConfigurationError(f"Unknown cache backend: {cache.backend}")

    if cache.secure_key is None:
        logger.info("No secure cache key configured, secure tier disabled")
        return plain, None

    try:
        secure = EncryptedKeyValueStore(secure_inner, cache.secure_key.get_secret_value())
    except ValueError as e:
        raise ConfigurationError(f"Invalid secure cache key: {e}") from e
    return plain, secure


@dataclass
class SahayakRuntime:
    """Wired set of Sahayak components with a shared lifecycle."""

    settings: SahayakSettings
    cache: CacheManager
    coordinator: RequestCoordinator
    monitor: PerformanceMonitor
    event_bus: EventBus
    scheduler: BackgroundRefreshScheduler
    staleness: StalenessPolicy
    metrics: Optional[CoordinatorMetrics] = None
    container: Container = field(default_factory=Container)
    _started: bool = field(default=False, init=False)

    @classmethod
    def from_settings(
        cls,
        settings: SahayakSettings,
        registry: Optional[CollectorRegistry] = None,
        configure_logs: bool = False,
    ) -> "SahayakRuntime":
        """
        Build a runtime.

        Args:
            settings: Settings to wire from
            registry: Prometheus registry for metrics (a private one when omitted)
            configure_logs: Install loguru sinks from the observability settings
        """
        if configure_logs:
            configure_logging(
                level=settings.observability.log_level,
                log_file=settings.observability.log_file,
            )

        plain, secure = build_stores(settings)
        cache = CacheManager(
            plain,
            secure_store=secure,
            groups=CacheGroups(),
            max_memory_items=settings.cache.max_memory_items,
            eviction_fraction=settings.cache.eviction_fraction,
            key_prefix=settings.cache.key_prefix,
            sweep_interval=settings.cache.sweep_interval_seconds,
        )

        monitor = PerformanceMonitor(slow_threshold_seconds=settings.orchestrator.slow_operation_seconds)
        event_bus = EventBus()
        if settings.observability.muted_events:
            event_bus.add_middleware(EventTypeFilter(settings.observability.muted_events))
        event_bus.add_middleware(EventLogMiddleware(settings.observability.event_log_level))
        metrics = CoordinatorMetrics(registry) if settings.observability.enable_metrics else None
        scheduler = BackgroundRefreshScheduler(default_interval=settings.refresh.interval_seconds)
        staleness = StalenessPolicy(threshold=timedelta(seconds=settings.refresh.stale_after_seconds))

        coordinator = RequestCoordinator(
            cache,
            monitor=monitor,
            event_bus=event_bus,
            metrics=metrics,
            scheduler=scheduler,
            default_cache_expiry=settings.orchestrator.default_cache_expiry_seconds,
            batch_delay=timedelta(milliseconds=settings.orchestrator.batch_delay_ms),
            global_refresh_interval=settings.orchestrator.global_refresh_interval_seconds,
        )

        container = Container()
        container.register_instance(SahayakSettings, settings)
        container.register_instance(CacheManager, cache)
        container.register_instance(PerformanceMonitor, monitor)
        container.register_instance(EventBus, event_bus)
        container.register_instance(BackgroundRefreshScheduler, scheduler)
        container.register_instance(StalenessPolicy, staleness)
        container.register_instance(RequestCoordinator, coordinator)
        container.register_factory(OfflineFirstCache, OfflineFirstCache)
        if metrics is not None:
            container.register_instance(CoordinatorMetrics, metrics)

        logger.info(
            f"Sahayak runtime built (environment={settings.environment}, "
            f"backend={settings.cache.backend}, secure_tier={secure is not None})"
        )

        return cls(
            settings=settings,
            cache=cache,
            coordinator=coordinator,
            monitor=monitor,
            event_bus=event_bus,
            scheduler=scheduler,
            staleness=staleness,
            metrics=metrics,
            container=container,
        )

    def build_consumer(self, consumer_type: type[C], *args: Any, **kwargs: Any) -> C:
        """
        Construct a consumer bound to this runtime's coordinator.

        The consumer judges staleness with the runtime policy built from
        `refresh.stale_after_seconds` unless `staleness` is passed.
        """
        kwargs.setdefault("staleness", self.staleness)
        return consumer_type(self.coordinator, *args, **kwargs)

    async def start(self) -> None:
        """Start the cache sweep and the global refresh timer."""
        if self._started:
            return
        await self.cache.start()
        await self.coordinator.start()
        self._started = True

    async def dispose(self) -> None:
        """Stop every timer and close redis connections."""
        await self.coordinator.dispose()
        await self.cache.dispose()
        self.event_bus.stop()

        for store in (self.cache.plain_store, self.cache.secure_store):
            inner = getattr(store, "inner", store)
            if isinstance(inner, RedisKeyValueStore):
                await inner.aclose()

        self._started = False
        logger.info("Sahayak runtime disposed")

    async def __aenter__(self) -> "SahayakRuntime":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.dispose()

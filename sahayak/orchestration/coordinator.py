"""
Sahayak Request Coordinator
Deduplicates in-flight operations, fronts them with the cache, batches
per-endpoint requests and drives background refresh of consumers.

All state lives on one asyncio event loop. The duplicate check and the
in-flight registration happen before the first await, so two calls
issued in the same tick cannot both pass the check.
"""

import asyncio
import time
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from loguru import logger

from sahayak.interfaces.cache import CacheProtocol
from sahayak.events.bus import EventBus
from sahayak.events.types import (
    BackgroundRefreshFailedEvent,
    CacheHitEvent,
    CacheMissEvent,
    DuplicateOperationEvent,
    Event,
    OperationCompletedEvent,
    OperationFailedEvent,
    OperationStartedEvent,
)
from sahayak.exceptions import DuplicateOperationError
from sahayak.monitoring.performance import PerformanceMonitor
from sahayak.observability.metrics import CoordinatorMetrics
from sahayak.orchestration.refresh import (
    BackgroundRefreshScheduler,
    RefreshCallback,
    RefreshPredicate,
)
from sahayak.utils.clock import to_timedelta

T = TypeVar("T")

EVENT_SOURCE = "request_coordinator"


@dataclass(frozen=True)
class CallResult(Generic[T]):
    """Result of a coordinated call with its provenance."""

    data: T
    from_cache: bool
    duration_ms: float


@dataclass(frozen=True)
class OrchestratorStats:
    """Coordinator counters. Call counters only ever grow."""

    in_flight_operations: int
    total_calls: int
    successful_calls: int
    failed_calls: int
    cache_hits: int
    duplicates_rejected: int
    registered_consumers: int
    active_batches: int

    def to_dict(self) -> dict[str, int]:
        return {
            "in_flight_operations": self.in_flight_operations,
            "total_calls": self.total_calls,
            "successful_calls": self.successful_calls,
            "failed_calls": self.failed_calls,
            "cache_hits": self.cache_hits,
            "duplicates_rejected": self.duplicates_rejected,
            "registered_consumers": self.registered_consumers,
            "active_batches": self.active_batches,
        }


@dataclass
class _PendingBatch:
    items: list[tuple[Callable[[], Awaitable[Any]], asyncio.Future]] = field(default_factory=list)
    handle: Optional[asyncio.TimerHandle] = None


class RequestCoordinator:
    """
    Front door for remote operations.

    Example:
        ```python
        coordinator = RequestCoordinator(cache)
        stats = await coordinator.execute_optimized_call(
            "dash_stats",
            api.get_user_stats,
            cache_key="dash_stats",
        )
        ```
    """

    def __init__(
        self,
        cache: CacheProtocol,
        monitor: Optional[PerformanceMonitor] = None,
        event_bus: Optional[EventBus] = None,
        metrics: Optional[CoordinatorMetrics] = None,
        scheduler: Optional[BackgroundRefreshScheduler] = None,
        default_cache_expiry: timedelta | float = timedelta(minutes=10),
        batch_delay: timedelta | float = timedelta(milliseconds=50),
        global_refresh_interval: timedelta | float | None = timedelta(minutes=5),
    ):
        """
        Initialize the coordinator.

        Args:
            cache: Cache manager used for read-through caching
            monitor: Performance monitor (a private one when omitted)
            event_bus: Optional bus receiving lifecycle events
            metrics: Optional prometheus collectors
            scheduler: Background refresh scheduler (a private one when omitted)
            default_cache_expiry: Lifetime of cached operation results
            batch_delay: Debounce window of batch_request
            global_refresh_interval: Period of refresh_all once started; None disables it
        """
        self.cache = cache
        self.monitor = monitor or PerformanceMonitor()
        self.event_bus = event_bus
        self.metrics = metrics
        self.scheduler = scheduler or BackgroundRefreshScheduler()
        if self.scheduler.on_failure is None:
            self.scheduler.on_failure = self.report_refresh_failure
        self.default_cache_expiry = to_timedelta(default_cache_expiry)
        self.batch_delay = to_timedelta(batch_delay)
        self.global_refresh_interval = to_timedelta(global_refresh_interval)

        self._in_flight: set[str] = set()
        self._consumers: set[str] = set()
        self._batches: dict[str, _PendingBatch] = {}
        self._batch_tasks: set[asyncio.Task] = set()
        self._global_timer: Optional[asyncio.Task] = None

        self._total_calls = 0
        self._successful_calls = 0
        self._failed_calls = 0
        self._cache_hits = 0
        self._duplicates_rejected = 0

    # Coordinated calls

    async def execute(
        self,
        operation_key: str,
        operation: Callable[[], Awaitable[T]],
        enable_caching: bool = True,
        cache_key: Optional[str] = None,
        cache_expiry: timedelta | float | None = None,
        secure: bool = False,
        as_type: Optional[type[T]] = None,
    ) -> CallResult[T]:
        """
        Run an operation with deduplication and read-through caching.

        Args:
            operation_key: In-flight identity of the call
            operation: Zero-argument coroutine factory
            enable_caching: Consult and populate the cache when cache_key is set
            cache_key: Cache key for the result
            cache_expiry: Result lifetime (default_cache_expiry when omitted)
            secure: Use the encrypted cache tier
            as_type: Validate cached payloads into this type

        Returns:
            CallResult with the data and whether it came from the cache

        Raises:
            DuplicateOperationError: If operation_key is already in flight
        """
        if operation_key in self._in_flight:
            self._duplicates_rejected += 1
            logger.debug(f"Rejected duplicate operation: {operation_key}")
            if self.metrics:
                self.metrics.record_duplicate()
            await self._emit(DuplicateOperationEvent(source=EVENT_SOURCE, operation_key=operation_key))
            raise DuplicateOperationError(operation_key)

        self._in_flight.add(operation_key)
        self._total_calls += 1
        self._update_in_flight_gauge()
        use_cache = enable_caching and cache_key is not None
        start = time.perf_counter()

        try:
            await self._emit(
                OperationStartedEvent(
                    source=EVENT_SOURCE, operation_key=operation_key, cache_key=cache_key
                )
            )

            if use_cache:
                cached = await self.cache.get(cache_key, secure=secure, as_type=as_type)
                if cached is not None:
                    duration_ms = (time.perf_counter() - start) * 1000
                    self._cache_hits += 1
                    self._successful_calls += 1
                    self.monitor.record_cache_hit()
                    if self.metrics:
                        self.metrics.record_cache_lookup(hit=True)
                        self.metrics.record_operation("cache_hit", duration_ms / 1000)
                    await self._emit(CacheHitEvent(source=EVENT_SOURCE, cache_key=cache_key))
                    await self._emit(
                        OperationCompletedEvent(
                            source=EVENT_SOURCE,
                            operation_key=operation_key,
                            duration_ms=duration_ms,
                            from_cache=True,
                        )
                    )
                    return CallResult(data=cached, from_cache=True, duration_ms=duration_ms)

                self.monitor.record_cache_miss()
                if self.metrics:
                    self.metrics.record_cache_lookup(hit=False)
                await self._emit(CacheMissEvent(source=EVENT_SOURCE, cache_key=cache_key))

            try:
                data = await operation()
            except Exception as e:
                duration_ms = (time.perf_counter() - start) * 1000
                self._failed_calls += 1
                self.monitor.record_request(operation_key, False, duration_ms)
                if self.metrics:
                    self.metrics.record_operation("error", duration_ms / 1000)
                await self._emit(
                    OperationFailedEvent(
                        source=EVENT_SOURCE,
                        operation_key=operation_key,
                        error_type=type(e).__name__,
                        error_message=str(e),
                        duration_ms=duration_ms,
                    )
                )
                raise

            if use_cache:
                await self.cache.store(
                    cache_key,
                    data,
                    expiry=self.default_cache_expiry if cache_expiry is None else cache_expiry,
                    secure=secure,
                )

            duration_ms = (time.perf_counter() - start) * 1000
            self._successful_calls += 1
            self.monitor.record_request(operation_key, True, duration_ms)
            if self.metrics:
                self.metrics.record_operation("success", duration_ms / 1000)
            await self._emit(
                OperationCompletedEvent(
                    source=EVENT_SOURCE, operation_key=operation_key, duration_ms=duration_ms
                )
            )
            return CallResult(data=data, from_cache=False, duration_ms=duration_ms)
        finally:
            self._in_flight.discard(operation_key)
            self._update_in_flight_gauge()

    async def execute_optimized_call(
        self,
        operation_key: str,
        operation: Callable[[], Awaitable[T]],
        enable_caching: bool = True,
        cache_key: Optional[str] = None,
        cache_expiry: timedelta | float | None = None,
        secure: bool = False,
        as_type: Optional[type[T]] = None,
    ) -> T:
        """Same as `execute`, returning only the data."""
        result = await self.execute(
            operation_key,
            operation,
            enable_caching=enable_caching,
            cache_key=cache_key,
            cache_expiry=cache_expiry,
            secure=secure,
            as_type=as_type,
        )
        return result.data

    def is_in_flight(self, operation_key: str) -> bool:
        return operation_key in self._in_flight

    @property
    def in_flight_operations(self) -> frozenset[str]:
        return frozenset(self._in_flight)

    # Batching

    async def batch_request(
        self,
        endpoint: str,
        request: Callable[[], Awaitable[T]],
        batch_delay: timedelta | float | None = None,
    ) -> T:
        """
        Queue a request for `endpoint` and run it with the others that
        arrive within the debounce window.

        Each arrival restarts the window. The batch runs its requests
        concurrently; every caller gets its own result or exception.
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()
        delay = self.batch_delay if batch_delay is None else to_timedelta(batch_delay)

        batch = self._batches.setdefault(endpoint, _PendingBatch())
        batch.items.append((request, future))
        if batch.handle is not None:
            batch.handle.cancel()
        batch.handle = loop.call_later(delay.total_seconds(), self._flush_batch, endpoint)

        return await future

    def _flush_batch(self, endpoint: str) -> None:
        batch = self._batches.pop(endpoint, None)
        if batch is None:
            return
        logger.debug(f"Executing batch for {endpoint} with {len(batch.items)} requests")
        task = asyncio.create_task(self._run_batch(endpoint, batch.items))
        self._batch_tasks.add(task)
        task.add_done_callback(self._batch_tasks.discard)

    async def _run_batch(
        self,
        endpoint: str,
        items: list[tuple[Callable[[], Awaitable[Any]], asyncio.Future]],
    ) -> None:
        results = await asyncio.gather(
            *(self.monitor.track_request(endpoint, request) for request, _ in items),
            return_exceptions=True,
        )
        for (_, future), result in zip(items, results):
            if future.done():
                continue
            if isinstance(result, BaseException):
                future.set_exception(result)
            else:
                future.set_result(result)

    # Background refresh

    def register_for_background_refresh(
        self,
        consumer_id: str,
        refresh: Optional[RefreshCallback] = None,
        should_refresh: Optional[RefreshPredicate] = None,
        interval: timedelta | float | None = None,
    ) -> None:
        """
        Register a consumer for background refresh.

        Args:
            consumer_id: Consumer identifier
            refresh: Silent refresh coroutine factory; schedules a periodic timer
            should_refresh: Predicate gating each refresh (always true when omitted)
            interval: Timer period (scheduler default when omitted)
        """
        self._consumers.add(consumer_id)
        if refresh is not None:
            self.scheduler.schedule(
                consumer_id,
                refresh,
                should_refresh or (lambda: True),
                interval=interval,
            )
        logger.debug(f"Registered {consumer_id} for background refresh")

    def unregister_from_background_refresh(self, consumer_id: str) -> None:
        self._consumers.discard(consumer_id)
        self.scheduler.cancel(consumer_id)
        logger.debug(f"Unregistered {consumer_id} from background refresh")

    @property
    def registered_consumers(self) -> frozenset[str]:
        return frozenset(self._consumers)

    async def refresh_all(self) -> None:
        """Silently refresh every registered consumer that is due."""
        logger.debug(f"Global refresh of {len(self._consumers)} consumers")
        await self.scheduler.tick_all()

    async def report_refresh_failure(self, consumer_id: str, error: Exception) -> None:
        """Count a failed silent refresh and publish it on the event bus."""
        if self.metrics:
            self.metrics.record_refresh_failure()
        await self._emit(
            BackgroundRefreshFailedEvent(
                source=EVENT_SOURCE,
                consumer_id=consumer_id,
                error_type=type(error).__name__,
                error_message=str(error),
            )
        )

    async def _global_refresh_loop(self) -> None:
        interval = self.global_refresh_interval.total_seconds()
        while True:
            await asyncio.sleep(interval)
            await self.refresh_all()

    # Lifecycle

    async def start(self) -> None:
        """Start the global refresh timer."""
        if self.global_refresh_interval is None:
            return
        if self._global_timer is None or self._global_timer.done():
            self._global_timer = asyncio.create_task(self._global_refresh_loop())
            logger.info(f"Global refresh every {self.global_refresh_interval}")

    async def dispose(self) -> None:
        """Cancel timers, pending batches and the refresh scheduler."""
        if self._global_timer is not None:
            self._global_timer.cancel()
            try:
                await self._global_timer
            except asyncio.CancelledError:
                pass
            self._global_timer = None

        for batch in self._batches.values():
            if batch.handle is not None:
                batch.handle.cancel()
            for _, future in batch.items:
                if not future.done():
                    future.cancel()
        self._batches.clear()

        await self.scheduler.dispose()
        self._consumers.clear()
        logger.info("Request coordinator disposed")

    def get_stats(self) -> OrchestratorStats:
        return OrchestratorStats(
            in_flight_operations=len(self._in_flight),
            total_calls=self._total_calls,
            successful_calls=self._successful_calls,
            failed_calls=self._failed_calls,
            cache_hits=self._cache_hits,
            duplicates_rejected=self._duplicates_rejected,
            registered_consumers=len(self._consumers),
            active_batches=len(self._batches),
        )

    async def _emit(self, event: Event) -> None:
        if self.event_bus is not None:
            await self.event_bus.emit(event)

    def _update_in_flight_gauge(self) -> None:
        if self.metrics:
            self.metrics.set_in_flight(len(self._in_flight))

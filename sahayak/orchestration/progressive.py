"""
Progressive (tiered) loading.

Operations are split into primary, secondary and tertiary tiers by name.
Tiers run one after another; operations inside a tier run concurrently.
Each tier's partial results are published before the next tier starts,
so a UI can render critical data first.
"""

import asyncio
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Callable, Generic, Mapping, Optional, TypeVar

from loguru import logger

from sahayak.events.bus import EventBus
from sahayak.events.types import TierCompletedEvent
from sahayak.exceptions import TierOrchestrationError
from sahayak.orchestration.coordinator import RequestCoordinator

T = TypeVar("T")

Operation = Callable[[], Awaitable[Any]]

_CLOSED = object()


class ProgressTier(str, Enum):
    """Loading tiers in execution order."""

    PRIMARY = "primary"
    SECONDARY = "secondary"
    TERTIARY = "tertiary"


def classify_operation(name: str) -> ProgressTier:
    """Tier of an operation, from keywords in its name."""
    if "primary" in name or "critical" in name:
        return ProgressTier.PRIMARY
    if "secondary" in name or "important" in name:
        return ProgressTier.SECONDARY
    return ProgressTier.TERTIARY


def partition_operations(operations: Mapping[str, Operation]) -> dict[ProgressTier, dict[str, Operation]]:
    """
    Split operations into tiers.

    Every tier is present in the result (possibly empty); input order is
    kept within a tier.
    """
    tiers: dict[ProgressTier, dict[str, Operation]] = {tier: {} for tier in ProgressTier}
    for name, operation in operations.items():
        tiers[classify_operation(name)][name] = operation
    return tiers


class ProgressStream(Generic[T]):
    """
    Broadcast channel of progress updates.

    Each subscriber gets its own queue and receives every value published
    after it subscribed, until the stream is closed.
    """

    def __init__(self, name: str = ""):
        self.name = name
        self.latest: Optional[T] = None
        self._subscribers: list[asyncio.Queue] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, value: T) -> None:
        if self._closed:
            logger.debug(f"Dropping publication on closed stream {self.name}")
            return
        self.latest = value
        for queue in self._subscribers:
            queue.put_nowait(value)

    def subscribe(self) -> AsyncIterator[T]:
        """Register a subscriber now and return its async iterator."""
        queue: asyncio.Queue = asyncio.Queue()
        if self._closed:
            queue.put_nowait(_CLOSED)
        else:
            self._subscribers.append(queue)
        return self._iterate(queue)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        for queue in self._subscribers:
            queue.put_nowait(_CLOSED)

    async def _iterate(self, queue: asyncio.Queue) -> AsyncIterator[T]:
        try:
            while True:
                item = await queue.get()
                if item is _CLOSED:
                    return
                yield item
        finally:
            if queue in self._subscribers:
                self._subscribers.remove(queue)


class ProgressiveLoader:
    """
    Runs named operations tier by tier through the request coordinator.

    Operation keys are ``"{namespace}:{tier}_{name}"``; cache keys are
    ``"{namespace}_{name}"``.
    """

    def __init__(
        self,
        coordinator: RequestCoordinator,
        namespace: str,
        enable_caching: bool = True,
        event_bus: Optional[EventBus] = None,
    ):
        self.coordinator = coordinator
        self.namespace = namespace
        self.enable_caching = enable_caching
        self.event_bus = event_bus if event_bus is not None else coordinator.event_bus
        self._streams: dict[ProgressTier, ProgressStream[dict[str, Any]]] = {
            tier: ProgressStream(f"{namespace}:{tier.value}") for tier in ProgressTier
        }

    async def execute_progressive_loading(self, operations: Mapping[str, Operation]) -> dict[str, Any]:
        """
        Execute operations tier by tier.

        Failed operations and operations returning None are left out of
        the result.

        Raises:
            TierOrchestrationError: If the operations cannot be partitioned
        """
        try:
            tiers = partition_operations(operations)
        except Exception as e:
            raise TierOrchestrationError(f"Could not partition operations: {e}") from e

        results: dict[str, Any] = {}
        for tier, tier_operations in tiers.items():
            if not tier_operations:
                continue

            tier_results, failed = await self._execute_tier(tier, tier_operations)
            results.update(tier_results)

            self._streams[tier].publish(dict(tier_results))
            if self.event_bus is not None:
                await self.event_bus.emit(
                    TierCompletedEvent(
                        source="progressive_loader",
                        namespace=self.namespace,
                        tier=tier.value,
                        succeeded=list(tier_results),
                        failed=failed,
                    )
                )
            logger.debug(f"Completed {tier.value} tier for {self.namespace}: {', '.join(tier_results)}")

        return results

    def get_progress_stream(self, tier: ProgressTier | str) -> ProgressStream[dict[str, Any]]:
        """Stream of partial results for a tier (accepts the enum or its value)."""
        return self._streams[ProgressTier(tier)]

    def dispose(self) -> None:
        for stream in self._streams.values():
            stream.close()

    def operation_key(self, tier: ProgressTier, name: str) -> str:
        return f"{self.namespace}:{tier.value}_{name}"

    def cache_key(self, name: str) -> str:
        return f"{self.namespace}_{name}"

    async def _execute_tier(
        self,
        tier: ProgressTier,
        operations: dict[str, Operation],
    ) -> tuple[dict[str, Any], list[str]]:
        try:
            calls = [
                self.coordinator.execute_optimized_call(
                    self.operation_key(tier, name),
                    operation,
                    enable_caching=self.enable_caching,
                    cache_key=self.cache_key(name),
                )
                for name, operation in operations.items()
            ]
        except Exception as e:
            raise TierOrchestrationError(f"Could not dispatch {tier.value} tier: {e}", tier=tier.value) from e

        outcomes = await asyncio.gather(*calls, return_exceptions=True)

        results: dict[str, Any] = {}
        failed: list[str] = []
        for name, outcome in zip(operations, outcomes):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, BaseException):
                logger.warning(f"Operation {name} failed in {tier.value} tier: {outcome}")
                failed.append(name)
            elif outcome is not None:
                results[name] = outcome
        return results, failed

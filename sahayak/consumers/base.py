"""
Optimized consumer base class.

A consumer owns a piece of screen state and loads it through the request
coordinator using progressive loading, optimistic updates and silent
background refresh.
"""

from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Any, Awaitable, Callable, Generic, Mapping, Optional, TypeVar

from loguru import logger

from sahayak.consumers.state import ConsumerState
from sahayak.orchestration.coordinator import RequestCoordinator
from sahayak.orchestration.optimistic import OptimisticUpdateController
from sahayak.orchestration.progressive import ProgressiveLoader, ProgressStream, ProgressTier
from sahayak.orchestration.refresh import StalenessPolicy
from sahayak.utils.clock import Clock, utcnow

S = TypeVar("S", bound=ConsumerState)
T = TypeVar("T")


class OptimizedConsumer(ABC, Generic[S]):
    """
    Base class for state containers backed by the request coordinator.

    Operation keys are namespaced per consumer, so two consumers may run
    operations with the same name at once.
    """

    def __init__(
        self,
        coordinator: RequestCoordinator,
        namespace: str,
        initial_state: S,
        refresh_interval: timedelta | float | None = None,
        staleness: Optional[StalenessPolicy] = None,
        clock: Clock = utcnow,
    ):
        """
        Initialize the consumer and register it for background refresh.

        Args:
            coordinator: Shared request coordinator
            namespace: Screen name; prefixes operation and cache keys
            initial_state: State before anything is loaded
            refresh_interval: Background refresh period (scheduler default when omitted)
            staleness: Staleness rule gating background refresh
            clock: Source of last_updated timestamps
        """
        self.coordinator = coordinator
        self.namespace = namespace
        self.staleness = staleness or StalenessPolicy(clock=clock)
        self.clock = clock
        self._state = initial_state
        self.states: ProgressStream[S] = ProgressStream(f"{namespace}:state")

        self.loader = ProgressiveLoader(coordinator, namespace)
        self.optimistic = OptimisticUpdateController(
            coordinator,
            operation_key=f"{namespace}:optimistic_update",
            on_failure=self.handle_optimistic_update_failure,
        )

        coordinator.register_for_background_refresh(
            namespace,
            refresh=self.handle_silent_refresh,
            should_refresh=lambda: self.needs_refresh,
            interval=refresh_interval,
        )
        self._closed = False

    @property
    def state(self) -> S:
        return self._state

    @property
    def is_stale(self) -> bool:
        return self.staleness.is_stale(self._state.last_updated)

    @property
    def needs_refresh(self) -> bool:
        return self.staleness.needs_refresh(
            self._state.last_updated, self._state.is_loading, self._state.is_refreshing
        )

    def emit(self, state: S) -> None:
        """Replace the current state and publish it to subscribers."""
        self._state = state
        self.states.publish(state)

    async def execute_optimized_call(
        self,
        name: str,
        operation: Callable[[], Awaitable[T]],
        enable_caching: bool = True,
        cache_key: Optional[str] = None,
        cache_expiry: timedelta | float | None = None,
    ) -> T:
        return await self.coordinator.execute_optimized_call(
            f"{self.namespace}:{name}",
            operation,
            enable_caching=enable_caching,
            cache_key=cache_key,
            cache_expiry=cache_expiry,
        )

    async def execute_progressive_loading(
        self, operations: Mapping[str, Callable[[], Awaitable[Any]]]
    ) -> dict[str, Any]:
        return await self.loader.execute_progressive_loading(operations)

    async def execute_optimistic_update(
        self,
        optimistic_value: T,
        operation: Callable[[], Awaitable[T]],
        apply: Callable[[T, bool], None],
        cache_key: Optional[str] = None,
    ) -> Optional[T]:
        return await self.optimistic.execute_optimistic_update(
            optimistic_value, operation, apply, cache_key=cache_key
        )

    def get_progress_stream(self, tier: ProgressTier | str) -> ProgressStream[dict[str, Any]]:
        return self.loader.get_progress_stream(tier)

    async def handle_optimistic_update_failure(self, error: Exception) -> None:
        """Called when an optimistic update fails. Override to revert state."""

    async def handle_silent_refresh(self) -> None:
        """Run `perform_silent_refresh`, logging instead of raising."""
        try:
            await self.perform_silent_refresh()
        except Exception as e:
            logger.warning(f"Silent refresh failed for {self.namespace}: {e}")
            await self.coordinator.report_refresh_failure(self.namespace, e)

    @abstractmethod
    async def perform_silent_refresh(self) -> None:
        """Reload data without touching loading indicators."""

    async def close(self) -> None:
        """Unregister from background refresh and close every stream."""
        if self._closed:
            return
        self._closed = True
        self.coordinator.unregister_from_background_refresh(self.namespace)
        self.loader.dispose()
        self.states.close()
        logger.debug(f"Consumer {self.namespace} closed")

"""
Optimistic updates: show the expected value now, confirm it with the
remote call afterwards.
"""

from typing import Awaitable, Callable, Optional, TypeVar

from loguru import logger

from sahayak.orchestration.coordinator import RequestCoordinator

T = TypeVar("T")

ApplyCallback = Callable[[T, bool], None]
FailureHandler = Callable[[Exception], Awaitable[None]]


class OptimisticUpdateController:
    """Applies optimistic values and reconciles them with the remote result."""

    def __init__(
        self,
        coordinator: RequestCoordinator,
        operation_key: str = "optimistic_update",
        on_failure: Optional[FailureHandler] = None,
    ):
        self.coordinator = coordinator
        self.operation_key = operation_key
        self.on_failure = on_failure

    async def execute_optimistic_update(
        self,
        optimistic_value: T,
        operation: Callable[[], Awaitable[T]],
        apply: ApplyCallback,
        cache_key: Optional[str] = None,
    ) -> Optional[T]:
        """
        Apply `optimistic_value`, then confirm it with `operation`.

        `apply(value, is_optimistic)` is called with the optimistic value
        right away and with the actual value once the operation succeeds.
        Failures (including a concurrent update under the same key) go to
        `handle_optimistic_update_failure`; nothing is retried.

        Returns:
            The actual value, or None if the operation failed
        """
        apply(optimistic_value, True)
        logger.debug(f"Applied optimistic update {self.operation_key}")

        try:
            actual = await self.coordinator.execute_optimized_call(
                self.operation_key,
                operation,
                enable_caching=True,
                cache_key=cache_key,
            )
        except Exception as e:
            logger.warning(f"Optimistic update {self.operation_key} failed: {e}")
            await self.handle_optimistic_update_failure(e)
            return None

        apply(actual, False)
        logger.debug(f"Confirmed optimistic update {self.operation_key}")
        return actual

    async def handle_optimistic_update_failure(self, error: Exception) -> None:
        if self.on_failure is not None:
            await self.on_failure(error)

"""
Background refresh scheduling and staleness rules.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Optional

from loguru import logger

from sahayak.utils.clock import Clock, to_timedelta, utcnow

RefreshCallback = Callable[[], Awaitable[None]]
RefreshPredicate = Callable[[], bool]
RefreshFailureHook = Callable[[str, Exception], Awaitable[None]]


@dataclass(frozen=True)
class StalenessPolicy:
    """Decides when consumer data is old enough to refresh."""

    threshold: timedelta = timedelta(minutes=5)
    clock: Clock = field(default=utcnow, compare=False)

    def is_stale(self, last_updated: Optional[datetime], now: Optional[datetime] = None) -> bool:
        """Data never loaded is stale; otherwise stale strictly after the threshold."""
        if last_updated is None:
            return True
        now = now or self.clock()
        return now - last_updated > self.threshold

    def needs_refresh(
        self,
        last_updated: Optional[datetime],
        is_loading: bool,
        is_refreshing: bool,
        now: Optional[datetime] = None,
    ) -> bool:
        return self.is_stale(last_updated, now) and not is_loading and not is_refreshing


@dataclass
class _Registration:
    refresh: RefreshCallback
    should_refresh: RefreshPredicate
    interval: timedelta
    timer: Optional[asyncio.Task] = None


class BackgroundRefreshScheduler:
    """
    One periodic timer per consumer.

    On every tick the consumer's predicate is consulted; when it holds and
    no refresh for that consumer is running, the refresh starts as its own
    task. Refresh errors are logged (and reported to `on_failure`) and
    never reach the timer, so the consumer stays scheduled.
    """

    def __init__(
        self,
        default_interval: timedelta | float = timedelta(minutes=2),
        on_failure: Optional[RefreshFailureHook] = None,
    ):
        self.default_interval = to_timedelta(default_interval)
        self.on_failure = on_failure
        self._registrations: dict[str, _Registration] = {}
        self._running: dict[str, asyncio.Task] = {}
        self._disposed = False

    def schedule(
        self,
        consumer_id: str,
        refresh: RefreshCallback,
        should_refresh: RefreshPredicate,
        interval: timedelta | float | None = None,
    ) -> None:
        """
        Start (or replace) the periodic timer for a consumer.

        Args:
            consumer_id: Consumer identifier
            refresh: Silent refresh coroutine factory
            should_refresh: Predicate checked on every tick
            interval: Tick period (default_interval when omitted)
        """
        if self._disposed:
            logger.debug(f"Scheduler disposed, not scheduling {consumer_id}")
            return

        self.cancel(consumer_id)
        registration = _Registration(
            refresh=refresh,
            should_refresh=should_refresh,
            interval=self.default_interval if interval is None else to_timedelta(interval),
        )
        registration.timer = asyncio.create_task(self._timer_loop(consumer_id, registration))
        self._registrations[consumer_id] = registration
        logger.debug(f"Scheduled background refresh for {consumer_id} every {registration.interval}")

    def cancel(self, consumer_id: str) -> None:
        """Stop a consumer's timer. A refresh already running is left alone."""
        registration = self._registrations.pop(consumer_id, None)
        if registration is not None and registration.timer is not None:
            registration.timer.cancel()

    async def tick(self, consumer_id: str) -> None:
        """Run one check for a consumer now and wait for any refresh it starts."""
        task = self._trigger(consumer_id)
        if task is not None:
            await task

    async def tick_all(self) -> None:
        """Run one check for every scheduled consumer concurrently."""
        tasks = [self._trigger(consumer_id) for consumer_id in list(self._registrations)]
        pending = [t for t in tasks if t is not None]
        if pending:
            await asyncio.gather(*pending)

    def is_scheduled(self, consumer_id: str) -> bool:
        return consumer_id in self._registrations

    def is_refreshing(self, consumer_id: str) -> bool:
        return consumer_id in self._running

    @property
    def scheduled_consumers(self) -> list[str]:
        return list(self._registrations)

    async def dispose(self) -> None:
        """Cancel every timer; refreshes already started run to completion."""
        self._disposed = True
        timers = [r.timer for r in self._registrations.values() if r.timer is not None]
        self._registrations.clear()
        for timer in timers:
            timer.cancel()
        await asyncio.gather(*timers, return_exceptions=True)
        logger.debug("Background refresh scheduler disposed")

    async def wait_for_running(self) -> None:
        """Wait until refreshes started before now have finished."""
        running = list(self._running.values())
        if running:
            await asyncio.gather(*running, return_exceptions=True)

    def _trigger(self, consumer_id: str) -> Optional[asyncio.Task]:
        if self._disposed:
            return None
        registration = self._registrations.get(consumer_id)
        if registration is None or consumer_id in self._running:
            return None

        try:
            due = registration.should_refresh()
        except Exception as e:
            logger.warning(f"Refresh predicate failed for {consumer_id}: {e}")
            return None
        if not due:
            return None

        task = asyncio.create_task(self._run_refresh(consumer_id, registration.refresh))
        self._running[consumer_id] = task
        task.add_done_callback(lambda _: self._running.pop(consumer_id, None))
        return task

    async def _run_refresh(self, consumer_id: str, refresh: RefreshCallback) -> None:
        try:
            await refresh()
        except Exception as e:
            logger.warning(f"Background refresh failed for {consumer_id}: {e}")
            if self.on_failure is not None:
                try:
                    await self.on_failure(consumer_id, e)
                except Exception as hook_error:
                    logger.error(f"Refresh failure hook raised for {consumer_id}: {hook_error}")

    async def _timer_loop(self, consumer_id: str, registration: _Registration) -> None:
        interval = registration.interval.total_seconds()
        while True:
            await asyncio.sleep(interval)
            self._trigger(consumer_id)

"""
Event bus for request-coordination lifecycle events.
"""

import asyncio
from collections import defaultdict
from typing import Awaitable, Callable, TypeVar

from loguru import logger

from sahayak.events.middleware import EventMiddleware
from sahayak.events.types import Event

EventHandler = Callable[[Event], Awaitable[None]]
T = TypeVar("T", bound=Event)


class EventBus:
    """
    Async event bus connecting the coordinator to observers.

    Publishing never fails the publisher: handler and middleware errors
    are logged and dropped, so a broken observer cannot break the
    operation that produced the event.

    Features:
    - Typed and wildcard subscriptions
    - Priority-ordered handlers (higher first)
    - Middleware chain that may transform or drop events
    """

    def __init__(self):
        """Initialize event bus."""
        self._handlers: dict[type[Event], list[tuple[EventHandler, int]]] = defaultdict(list)
        self._wildcard_handlers: list[tuple[EventHandler, int]] = []
        self._middleware: list[EventMiddleware] = []
        self._running = True

    def subscribe(
        self,
        event_type: type[T],
        handler: Callable[[T], Awaitable[None]],
        priority: int = 0,
    ) -> None:
        """
        Subscribe to an event type.

        Args:
            event_type: Type of event to subscribe to
            handler: Async handler function
            priority: Handler priority (higher = executed first)
        """
        self._handlers[event_type].append((handler, priority))
        self._handlers[event_type].sort(key=lambda x: x[1], reverse=True)

        logger.debug(f"Subscribed handler to {event_type.__name__} with priority {priority}")

    def subscribe_all(self, handler: EventHandler, priority: int = 0) -> None:
        """
        Subscribe to every event type.

        Args:
            handler: Async handler function
            priority: Handler priority
        """
        self._wildcard_handlers.append((handler, priority))
        self._wildcard_handlers.sort(key=lambda x: x[1], reverse=True)

    def unsubscribe(
        self,
        event_type: type[T],
        handler: Callable[[T], Awaitable[None]],
    ) -> None:
        """
        Unsubscribe from an event type.

        Args:
            event_type: Event type to unsubscribe from
            handler: Handler to remove
        """
        handlers = self._handlers.get(event_type, [])
        self._handlers[event_type] = [(h, p) for h, p in handlers if h != handler]

    def add_middleware(self, middleware: EventMiddleware) -> None:
        """
        Add middleware to the publishing chain.

        Middleware receives the event and returns it (possibly replaced),
        or None to stop propagation.

        Args:
            middleware: Middleware callable
        """
        self._middleware.append(middleware)
        logger.debug(f"Added middleware: {getattr(middleware, '__name__', repr(middleware))}")

    async def emit(self, event: Event) -> None:
        """
        Emit an event to all subscribed handlers.

        Handlers for the event's exact type run alongside wildcard
        handlers; all are awaited before this returns.

        Args:
            event: Event to emit
        """
        if not self._running:
            logger.debug("Event bus is stopped, ignoring event")
            return

        processed_event = event
        for middleware in self._middleware:
            try:
                processed_event = await middleware(processed_event)
            except Exception as e:
                logger.error(f"Middleware error: {e}")
                processed_event = event
                continue
            if processed_event is None:
                logger.trace(f"Middleware stopped event propagation: {event.id}")
                return

        event_type = type(processed_event)
        all_handlers = self._handlers.get(event_type, []) + self._wildcard_handlers
        if not all_handlers:
            return

        await asyncio.gather(
            *(self._execute_handler(handler, processed_event) for handler, _ in all_handlers)
        )

    async def _execute_handler(self, handler: EventHandler, event: Event) -> None:
        """Run one handler, logging rather than raising on error."""
        try:
            await handler(event)
        except Exception as e:
            logger.error(
                f"Error in event handler {getattr(handler, '__name__', handler)} "
                f"for event {event.__class__.__name__}: {e}"
            )

    def clear(self) -> None:
        """Clear all handlers and middleware."""
        self._handlers.clear()
        self._wildcard_handlers.clear()
        self._middleware.clear()

    def stop(self) -> None:
        """Stop delivering events."""
        self._running = False
        logger.info("Event bus stopped")

    def start(self) -> None:
        """Resume delivering events."""
        self._running = True

    def get_handler_count(self) -> int:
        """Get total number of registered handlers."""
        specific_count = sum(len(handlers) for handlers in self._handlers.values())
        return specific_count + len(self._wildcard_handlers)

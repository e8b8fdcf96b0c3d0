"""Async event bus for in-process pub/sub.

The event bus decouples event producers from consumers.
Publishers emit events, subscribers receive events they're interested in.
"""

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog

from src.events.base import Event

logger = structlog.get_logger()

T = TypeVar("T", bound=Event)
EventHandler = Callable[[Event], None] | Callable[[Event], Awaitable[None]]


class EventBus:
    """Simple async event bus for in-process pub/sub.

    Features:
    - Type-safe subscriptions
    - Async handler support
    - Error isolation (one handler failure doesn't affect others)
    """

    def __init__(self):
        self._subscribers: dict[type[Event], list[EventHandler]] = {}

    def subscribe(
        self,
        event_type: type[T],
        handler: Callable[[T], None] | Callable[[T], Awaitable[None]],
    ) -> None:
        """Subscribe a handler to an event type.

        Args:
            event_type: The event class to subscribe to
            handler: Function to call when event is published
        """
        self._subscribers.setdefault(event_type, []).append(handler)
        logger.debug("handler subscribed", event_type=event_type.__name__)

    def unsubscribe(
        self,
        event_type: type[T],
        handler: EventHandler,
    ) -> None:
        """Unsubscribe a handler from an event type.

        Args:
            event_type: The event class to unsubscribe from
            handler: The handler to remove
        """
        handlers = self._subscribers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)
            logger.debug("handler unsubscribed", event_type=event_type.__name__)

    async def publish(self, event: Event) -> None:
        """Publish an event to all subscribers.

        Handler failures are logged and never reach the publisher.

        Args:
            event: The event to publish
        """
        handlers = self._subscribers.get(type(event), [])
        logger.debug(
            "publishing event", event_type=event.event_type, handlers=len(handlers)
        )

        # Run handlers concurrently
        tasks = []
        for handler in handlers:
            if inspect.iscoroutinefunction(handler):
                tasks.append(handler(event))
            else:
                tasks.append(asyncio.to_thread(handler, event))

        if tasks:
            results = await asyncio.gather(*tasks, return_exceptions=True)
            for result in results:
                if isinstance(result, Exception):
                    logger.error(
                        "event handler failed",
                        event_type=event.event_type,
                        error=str(result),
                    )

    def subscriber_count(self, event_type: type[Event]) -> int:
        """Get number of subscribers for an event type."""
        return len(self._subscribers.get(event_type, []))

"""In-process domain event bus.

Publish/subscribe keyed by event type. Publishing runs every handler for
the type concurrently and waits for all of them; a failing handler is
logged and never affects its siblings or the publisher. Delivery is
"attempted once, in this process, now": durability is the job of the
subscriber that hands events to the queue.
"""

import asyncio
from collections.abc import Awaitable, Callable

import structlog

from app.domain.events import DomainEvent, EventPayload, EventType

logger = structlog.get_logger()

EventHandler = Callable[[DomainEvent], Awaitable[None]]


class EventBus:
    """In-process publish/subscribe for domain events."""

    def __init__(self) -> None:
        self._subscriptions: dict[EventType, list[EventHandler]] = {}

    def subscribe(self, event_type: EventType, handler: EventHandler) -> Callable[[], None]:
        """Register a handler for an event type.

        Args:
            event_type: Event kind to listen for.
            handler: Async callable receiving the DomainEvent.

        Returns:
            Closure that removes this registration when called.
        """
        handlers = self._subscriptions.setdefault(event_type, [])
        handlers.append(handler)
        logger.debug("Subscribed to event", event_type=event_type.value)

        def unsubscribe() -> None:
            if handler in handlers:
                handlers.remove(handler)
                logger.debug("Unsubscribed from event", event_type=event_type.value)

        return unsubscribe

    async def publish(self, event_type: EventType, payload: EventPayload) -> DomainEvent:
        """Publish an event to every subscriber of its type.

        Args:
            event_type: Event kind.
            payload: Typed payload for the event.

        Returns:
            The DomainEvent that was delivered.
        """
        event = DomainEvent(event_type=event_type, payload=payload)
        handlers = list(self._subscriptions.get(event_type, []))

        logger.info(
            "Publishing domain event",
            event_type=event_type.value,
            event_id=event.event_id,
            subscribers=len(handlers),
        )

        if handlers:
            await asyncio.gather(*(self._run_handler(handler, event) for handler in handlers))

        return event

    async def _run_handler(self, handler: EventHandler, event: DomainEvent) -> None:
        try:
            await handler(event)
        except Exception:
            logger.exception(
                "Event handler failed",
                event_type=event.event_type.value,
                event_id=event.event_id,
                handler=getattr(handler, "__qualname__", repr(handler)),
            )

    def subscriber_count(self, event_type: EventType) -> int:
        """Number of handlers registered for an event type."""
        return len(self._subscriptions.get(event_type, []))

    def clear(self) -> None:
        """Remove every subscription."""
        self._subscriptions.clear()

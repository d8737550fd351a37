"""Topic-per-meeting event bus for in-process pub/sub.

The event bus decouples the engine (publisher) from live observers
(subscribers). Each topic carries one meeting's events; messages travel as
serialized JSON envelopes so the in-process bus behaves like the Redis one.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import Protocol

from pydantic import ValidationError as PydanticValidationError

from meeting_cost.events.base import MeetingEvent

logger = logging.getLogger(__name__)

# Sentinel pushed into a queue when the subscription is closed
_CLOSED = object()


class EventBusError(Exception):
    """Raised when publishing or receiving through the bus fails."""


class Subscription(Protocol):
    """A live handle on one topic; iterate to receive events in order."""

    topic: str

    def __aiter__(self) -> AsyncIterator[MeetingEvent]: ...

    async def close(self) -> None: ...


class EventBus(Protocol):
    """Broadcast channel with at-most-once delivery."""

    async def publish(self, topic: str, event: MeetingEvent) -> int: ...

    async def subscribe(self, topic: str) -> Subscription: ...

    async def close(self) -> None: ...


class MemorySubscription:
    """Queue-backed subscription owned by ``MemoryEventBus``."""

    def __init__(self, bus: "MemoryEventBus", topic: str, max_pending: int):
        self.topic = topic
        self._bus = bus
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max_pending)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _deliver(self, message: str) -> bool:
        if self._closed:
            return False
        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning("Dropping event for slow subscriber on %s", self.topic)
            return False
        return True

    def __aiter__(self) -> AsyncIterator[MeetingEvent]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[MeetingEvent]:
        while True:
            message = await self._queue.get()
            if message is _CLOSED:
                return
            try:
                yield MeetingEvent.from_json(message)
            except PydanticValidationError as e:
                raise EventBusError(f"Malformed event on {self.topic}: {e}") from e

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._bus._detach(self)
        # Wake a pending reader; the queue may be full of undelivered events
        while True:
            try:
                self._queue.put_nowait(_CLOSED)
                break
            except asyncio.QueueFull:
                self._queue.get_nowait()

    async def __aenter__(self) -> "MemorySubscription":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()


class MemoryEventBus:
    """Simple async topic bus for in-process pub/sub.

    Features:
    - Topic isolation (one topic per meeting)
    - Publish order preserved per subscriber
    - At-most-once: slow subscribers drop events instead of blocking
      the publisher
    """

    def __init__(self, max_pending: int = 1000):
        """Initialize event bus.

        Args:
            max_pending: Per-subscriber buffer before events are dropped
        """
        self._topics: dict[str, list[MemorySubscription]] = {}
        self._max_pending = max_pending

    async def publish(self, topic: str, event: MeetingEvent) -> int:
        """Publish an event to every live subscriber of a topic.

        Returns:
            Number of subscribers the event was handed to
        """
        try:
            message = event.to_json()
        except (TypeError, ValueError) as e:
            raise EventBusError(f"Cannot serialize {event.type} event: {e}") from e

        subscribers = list(self._topics.get(topic, []))
        delivered = sum(1 for sub in subscribers if sub._deliver(message))
        logger.debug("Published %s to %s (%d subscriber(s))", event.type, topic, delivered)
        return delivered

    async def subscribe(self, topic: str) -> MemorySubscription:
        """Open a subscription; only events published afterwards are seen."""
        subscription = MemorySubscription(self, topic, self._max_pending)
        self._topics.setdefault(topic, []).append(subscription)
        logger.debug("Subscribed to %s", topic)
        return subscription

    def _detach(self, subscription: MemorySubscription) -> None:
        subscribers = self._topics.get(subscription.topic)
        if not subscribers:
            return
        try:
            subscribers.remove(subscription)
        except ValueError:
            pass  # Already detached
        if not subscribers:
            del self._topics[subscription.topic]

    def subscriber_count(self, topic: str) -> int:
        """Get number of live subscribers for a topic."""
        return len(self._topics.get(topic, []))

    async def close(self) -> None:
        for subscribers in list(self._topics.values()):
            for subscription in list(subscribers):
                await subscription.close()

"""Redis pub/sub implementation of the event bus."""

import logging
from collections.abc import AsyncIterator

from pydantic import ValidationError as PydanticValidationError
from redis.asyncio import Redis
from redis.asyncio.client import PubSub
from redis.exceptions import RedisError

from meeting_cost.events.base import MeetingEvent
from meeting_cost.events.bus import EventBusError

logger = logging.getLogger(__name__)


class RedisSubscription:
    """One Redis ``SUBSCRIBE`` on a meeting topic."""

    def __init__(self, pubsub: PubSub, topic: str):
        self.topic = topic
        self._pubsub = pubsub
        self._closed = False

    def __aiter__(self) -> AsyncIterator[MeetingEvent]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[MeetingEvent]:
        try:
            async for message in self._pubsub.listen():
                if message.get("type") != "message":
                    continue
                try:
                    yield MeetingEvent.from_json(message["data"])
                except PydanticValidationError as e:
                    raise EventBusError(f"Malformed event on {self.topic}: {e}") from e
        except RedisError as e:
            raise EventBusError(f"Subscription on {self.topic} failed: {e}") from e

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self._pubsub.unsubscribe(self.topic)
        except RedisError as e:
            logger.warning("Unsubscribe from %s failed: %s", self.topic, e)
        finally:
            await self._pubsub.aclose()

    async def __aenter__(self) -> "RedisSubscription":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()


class RedisEventBus:
    """Event bus over Redis channels (``events:meeting:{id}``).

    Redis delivers messages of one channel in publish order to each
    subscriber; subscribers that are not connected miss them.
    """

    def __init__(self, client: Redis):
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisEventBus":
        return cls(Redis.from_url(url, decode_responses=True))

    async def publish(self, topic: str, event: MeetingEvent) -> int:
        try:
            receivers = await self._client.publish(topic, event.to_json())
        except RedisError as e:
            raise EventBusError(f"Publish to {topic} failed: {e}") from e
        logger.debug("Published %s to %s (%d receiver(s))", event.type, topic, receivers)
        return receivers

    async def subscribe(self, topic: str) -> RedisSubscription:
        pubsub = self._client.pubsub(ignore_subscribe_messages=True)
        try:
            await pubsub.subscribe(topic)
        except RedisError as e:
            await pubsub.aclose()
            raise EventBusError(f"Subscribe to {topic} failed: {e}") from e
        return RedisSubscription(pubsub, topic)

    async def close(self) -> None:
        await self._client.aclose()

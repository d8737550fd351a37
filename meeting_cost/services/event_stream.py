"""Forwards a meeting's bus topic to one live connection."""

import asyncio
from typing import Protocol
from uuid import UUID

import structlog

from meeting_cost.events import EventBusError, Subscription
from meeting_cost.services.meeting_engine import MeetingEngine

logger = structlog.get_logger()


class SubscriberConnection(Protocol):
    """Transport the endpoint writes events to (e.g. a websocket)."""

    async def send_text(self, data: str) -> None: ...

    async def wait_disconnect(self) -> None: ...


class EventStreamEndpoint:
    """Authorizes a subscriber then relays events until either side ends.

    The subscription is released when the peer disconnects, when the bus
    fails, or when the surrounding task is cancelled.
    """

    def __init__(self, engine: MeetingEngine):
        self._engine = engine

    async def serve(
        self,
        meeting_id: UUID,
        actor_id: UUID,
        connection: SubscriberConnection,
    ) -> None:
        """Stream events for one meeting to ``connection``.

        Raises:
            ForbiddenError: Actor may not read the meeting
            NotFoundError: Meeting does not exist
        """
        subscription = await self._engine.subscribe(meeting_id, actor_id)
        logger.info(
            "event stream opened", meeting_id=str(meeting_id), actor_id=str(actor_id)
        )
        forward = asyncio.create_task(self._forward(subscription, connection))
        disconnect = asyncio.create_task(connection.wait_disconnect())
        try:
            done, _ = await asyncio.wait(
                {forward, disconnect}, return_when=asyncio.FIRST_COMPLETED
            )
            if forward in done and not forward.cancelled():
                error = forward.exception()
                if error is not None:
                    logger.warning(
                        "event stream ended by error",
                        meeting_id=str(meeting_id),
                        error=str(error),
                    )
        finally:
            for task in (forward, disconnect):
                task.cancel()
            await asyncio.gather(forward, disconnect, return_exceptions=True)
            await subscription.close()
            logger.info("event stream closed", meeting_id=str(meeting_id))

    async def _forward(
        self,
        subscription: Subscription,
        connection: SubscriberConnection,
    ) -> None:
        try:
            async for event in subscription:
                await connection.send_text(event.to_json())
        except EventBusError as e:
            logger.error(
                "event bus receive failed", topic=subscription.topic, error=str(e)
            )

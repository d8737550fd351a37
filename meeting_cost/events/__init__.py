"""Event infrastructure for the meeting cost engine.

Provides:
- MeetingEvent / EventType: JSON envelope published per committed mutation
- EventBus / Subscription: Topic-per-meeting pub/sub protocols
- MemoryEventBus: In-process bus
- RedisEventBus: Redis pub/sub bus
"""

from meeting_cost.events.base import EventType, MeetingEvent
from meeting_cost.events.bus import (
    EventBus,
    EventBusError,
    MemoryEventBus,
    MemorySubscription,
    Subscription,
)
from meeting_cost.events.redis_bus import RedisEventBus, RedisSubscription

__all__ = [
    # Envelope
    "MeetingEvent",
    "EventType",
    # Infrastructure
    "EventBus",
    "EventBusError",
    "Subscription",
    "MemoryEventBus",
    "MemorySubscription",
    "RedisEventBus",
    "RedisSubscription",
]

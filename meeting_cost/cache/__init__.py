"""Read-through cache for hot meeting records and increment lists.

Provides:
- Cache: Backend protocol
- SafeCache: Wrapper that logs and swallows backend failures
- MemoryCache / RedisCache: In-process and Redis backends
- Key helpers shared by readers and invalidators
"""

from meeting_cost.cache.base import Cache, CacheError, SafeCache
from meeting_cost.cache.keys import (
    has_permission_key,
    meeting_events_channel,
    meeting_external_key,
    meeting_increments_key,
    meeting_key,
)
from meeting_cost.cache.memory import MemoryCache
from meeting_cost.cache.redis_cache import RedisCache

__all__ = [
    "Cache",
    "CacheError",
    "SafeCache",
    "MemoryCache",
    "RedisCache",
    "meeting_key",
    "meeting_increments_key",
    "meeting_external_key",
    "has_permission_key",
    "meeting_events_channel",
]

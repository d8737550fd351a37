"""Tests for cache backends and the failure-swallowing wrapper."""

from unittest.mock import AsyncMock
from uuid import UUID

import pytest

from meeting_cost.cache import (
    CacheError,
    MemoryCache,
    SafeCache,
    has_permission_key,
    meeting_events_channel,
    meeting_increments_key,
    meeting_key,
)

MEETING_ID = UUID("5f0c2a8e-1111-4222-8333-444455556666")


class FakeMonotonic:
    def __init__(self) -> None:
        self.value = 1000.0

    def __call__(self) -> float:
        return self.value


class TestKeys:
    def test_meeting_keys(self) -> None:
        assert meeting_key(MEETING_ID) == f"meeting:{MEETING_ID}"
        assert meeting_increments_key(MEETING_ID) == f"meeting:{MEETING_ID}:increments"
        assert meeting_events_channel(MEETING_ID) == f"events:meeting:{MEETING_ID}"

    def test_permission_key_without_resource(self) -> None:
        key = has_permission_key(MEETING_ID, MEETING_ID, "meeting", None, "create")
        assert key.endswith(":meeting:nil:create")
        assert key.startswith("has_perm:")


class TestMemoryCache:
    async def test_set_get_delete(self) -> None:
        cache = MemoryCache()
        await cache.set("a", "1", 60)
        await cache.set("b", "2", 60)
        assert await cache.get("a") == "1"

        await cache.delete("a", "b", "missing")
        assert await cache.get("a") is None
        assert len(cache) == 0

    async def test_entries_expire(self) -> None:
        clock = FakeMonotonic()
        cache = MemoryCache(monotonic=clock)
        await cache.set("a", "1", 30)

        clock.value += 29
        assert await cache.get("a") == "1"
        clock.value += 1
        assert await cache.get("a") is None
        assert "a" not in cache


class TestSafeCache:
    @pytest.fixture
    def broken(self) -> AsyncMock:
        backend = AsyncMock(spec=MemoryCache)
        backend.get.side_effect = CacheError("connection refused")
        backend.set.side_effect = CacheError("connection refused")
        backend.delete.side_effect = CacheError("connection refused")
        backend.ping.side_effect = CacheError("connection refused")
        return backend

    async def test_failures_read_as_miss(self, broken: AsyncMock) -> None:
        cache = SafeCache(broken)
        assert await cache.get("a") is None
        await cache.set("a", "1", 60)
        await cache.invalidate("a", "b")
        assert await cache.ping() is False

    async def test_invalidate_without_keys_skips_backend(self, broken: AsyncMock) -> None:
        await SafeCache(broken).invalidate()
        broken.delete.assert_not_awaited()

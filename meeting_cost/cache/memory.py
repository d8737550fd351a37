"""In-process TTL cache used when no Redis URL is configured."""

import time
from collections.abc import Callable


class MemoryCache:
    """Dictionary-backed cache with per-key expiry.

    Args:
        monotonic: Time source in seconds (injectable for tests)
    """

    def __init__(self, monotonic: Callable[[], float] = time.monotonic):
        self._entries: dict[str, tuple[float, str]] = {}
        self._monotonic = monotonic

    async def get(self, key: str) -> str | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._monotonic() >= expires_at:
            del self._entries[key]
            return None
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._entries[key] = (self._monotonic() + ttl_seconds, value)

    async def delete(self, *keys: str) -> None:
        for key in keys:
            self._entries.pop(key, None)

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

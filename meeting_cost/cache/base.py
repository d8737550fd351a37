"""Cache abstraction shared by the in-process and Redis backends."""

import logging
from typing import Protocol

logger = logging.getLogger(__name__)


class CacheError(Exception):
    """Raised by cache backends when the store is unreachable."""


class Cache(Protocol):
    """Key/value store of opaque serialized snapshots with TTLs."""

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None: ...

    async def delete(self, *keys: str) -> None: ...

    async def ping(self) -> bool: ...

    async def close(self) -> None: ...


class SafeCache:
    """Wraps a backend so cache failures never reach the caller.

    Every failure is logged and treated as a miss (reads) or a no-op
    (writes and invalidations); the ledger stays the source of truth.
    """

    def __init__(self, backend: Cache):
        self._backend = backend

    @property
    def backend(self) -> Cache:
        return self._backend

    async def get(self, key: str) -> str | None:
        try:
            return await self._backend.get(key)
        except Exception as e:
            logger.warning("Cache get failed for %s: %s", key, e)
            return None

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            await self._backend.set(key, value, ttl_seconds)
        except Exception as e:
            logger.warning("Cache set failed for %s: %s", key, e)

    async def invalidate(self, *keys: str) -> None:
        if not keys:
            return
        try:
            await self._backend.delete(*keys)
        except Exception as e:
            logger.warning("Cache invalidation failed for %s: %s", ", ".join(keys), e)

    async def ping(self) -> bool:
        try:
            return await self._backend.ping()
        except Exception:
            return False

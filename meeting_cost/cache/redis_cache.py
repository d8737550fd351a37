"""Redis-backed cache."""

from redis.asyncio import Redis
from redis.exceptions import RedisError

from meeting_cost.cache.base import CacheError


class RedisCache:
    """Cache storing serialized snapshots in Redis with ``SET ... EX``."""

    def __init__(self, client: Redis):
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisCache":
        return cls(Redis.from_url(url, decode_responses=True))

    @property
    def client(self) -> Redis:
        return self._client

    async def get(self, key: str) -> str | None:
        try:
            return await self._client.get(key)
        except RedisError as e:
            raise CacheError(f"get {key}: {e}") from e

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            await self._client.set(key, value, ex=ttl_seconds)
        except RedisError as e:
            raise CacheError(f"set {key}: {e}") from e

    async def delete(self, *keys: str) -> None:
        if not keys:
            return
        try:
            await self._client.delete(*keys)
        except RedisError as e:
            raise CacheError(f"delete {', '.join(keys)}: {e}") from e

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except RedisError as e:
            raise CacheError(f"ping: {e}") from e

    async def close(self) -> None:
        await self._client.aclose()

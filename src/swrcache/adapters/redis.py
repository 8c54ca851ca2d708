"""Redis cache store."""

from __future__ import annotations

from typing import Any


class AsyncRedisStore:
    """Async Redis store.

    Payloads live under ``{prefix}:cache:{key}`` and expire natively through
    ``PX``. Read-modify-write locks use redis-py's lock so that API processes
    and workers sharing the same Redis serialize updates of one key.
    """

    def __init__(
        self,
        client: Any,  # redis.asyncio.Redis
        *,
        prefix: str = "swrcache",
        lock_timeout: float = 90.0,
        lock_blocking_timeout: float | None = 30.0,
    ) -> None:
        self._client = client
        self._prefix = prefix
        self._lock_timeout = lock_timeout
        self._lock_blocking_timeout = lock_blocking_timeout

    @classmethod
    def from_url(cls, url: str, **kwargs: Any) -> AsyncRedisStore:
        import redis.asyncio

        return cls(redis.asyncio.Redis.from_url(url, decode_responses=False), **kwargs)

    def _cache_key(self, key: str) -> str:
        return f"{self._prefix}:cache:{key}"

    def _lock_key(self, key: str) -> str:
        return f"{self._prefix}:lock:{key}"

    async def get(self, key: str) -> bytes | None:
        data = await self._client.get(self._cache_key(key))
        if isinstance(data, str):
            return data.encode("utf-8")
        return data

    async def set(self, key: str, data: bytes, ttl_ms: int | None = None) -> None:
        if ttl_ms is not None and ttl_ms > 0:
            await self._client.set(self._cache_key(key), data, px=ttl_ms)
        else:
            await self._client.set(self._cache_key(key), data)

    async def delete(self, key: str) -> None:
        await self._client.delete(self._cache_key(key))

    async def keys(self) -> list[str]:
        prefix = self._cache_key("")
        keys: list[str] = []
        async for raw in self._client.scan_iter(match=f"{prefix}*", count=100):
            name = raw.decode("utf-8") if isinstance(raw, bytes) else raw
            keys.append(name[len(prefix) :])
        return keys

    async def clear(self) -> None:
        """Clear all cached entries (locks are left to expire)."""
        # Use SCAN to find and delete all cache keys
        cursor: int = 0
        pattern = f"{self._prefix}:cache:*"
        while True:
            cursor, keys = await self._client.scan(cursor, match=pattern, count=100)
            if keys:
                await self._client.delete(*keys)
            if cursor == 0:
                break

    def lock(self, key: str) -> Any:
        return self._client.lock(
            self._lock_key(key),
            timeout=self._lock_timeout,
            blocking_timeout=self._lock_blocking_timeout,
        )

    async def ready(self) -> None:
        await self._client.ping()

    async def disconnect(self) -> None:
        """Close the Redis connection."""
        await self._client.aclose()

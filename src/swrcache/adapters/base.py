"""Base protocol for cache storage backends."""

from contextlib import AbstractAsyncContextManager
from typing import Protocol, runtime_checkable


@runtime_checkable
class AsyncCacheStore(Protocol):
    """Async byte store with TTLs and per-key locks.

    The cache keeps its envelope encoding to itself; stores only see bytes.
    """

    async def get(self, key: str) -> bytes | None:
        """Get the stored payload for a key."""
        ...

    async def set(self, key: str, data: bytes, ttl_ms: int | None = None) -> None:
        """Store a payload, expiring after ``ttl_ms`` when given."""
        ...

    async def delete(self, key: str) -> None:
        """Delete a payload."""
        ...

    async def keys(self) -> list[str]:
        """All live keys."""
        ...

    async def clear(self) -> None:
        """Remove every payload."""
        ...

    def lock(self, key: str) -> AbstractAsyncContextManager[None]:
        """Exclusive lock for read-modify-write on one key."""
        ...

    async def ready(self) -> None:
        """Wait until the backend accepts commands."""
        ...

    async def disconnect(self) -> None:
        """Disconnect from the storage backend."""
        ...

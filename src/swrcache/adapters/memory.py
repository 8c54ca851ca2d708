"""In-memory cache store."""

import asyncio
from collections import OrderedDict
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

from swrcache.timer import MonotonicTimer, Timer


@dataclass
class _KeyLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class AsyncMemoryStore:
    """Async in-memory store with optional LRU eviction.

    Expiry is measured with the given timer, so a ``ManualTimer`` makes TTLs
    fully deterministic in tests.
    """

    def __init__(self, *, timer: Timer | None = None, max_items: int | None = None) -> None:
        self._data: OrderedDict[str, tuple[bytes, int | None]] = OrderedDict()
        self._timer = timer or MonotonicTimer()
        self._max_items = max_items
        self._lock = asyncio.Lock()
        self._key_locks: dict[str, _KeyLock] = {}

    def _is_expired(self, expires_at: int | None) -> bool:
        return expires_at is not None and self._timer.now() >= expires_at

    async def get(self, key: str) -> bytes | None:
        async with self._lock:
            item = self._data.get(key)
            if item is None:
                return None
            data, expires_at = item
            if self._is_expired(expires_at):
                del self._data[key]
                return None
            self._data.move_to_end(key)  # LRU touch
            return data

    async def set(self, key: str, data: bytes, ttl_ms: int | None = None) -> None:
        expires_at = self._timer.now() + ttl_ms if ttl_ms is not None else None
        async with self._lock:
            self._data[key] = (data, expires_at)
            self._data.move_to_end(key)
            if self._max_items and len(self._data) > self._max_items:
                self._data.popitem(last=False)

    async def delete(self, key: str) -> None:
        async with self._lock:
            self._data.pop(key, None)

    async def keys(self) -> list[str]:
        async with self._lock:
            return [
                key
                for key, (_, expires_at) in self._data.items()
                if not self._is_expired(expires_at)
            ]

    async def clear(self) -> None:
        async with self._lock:
            self._data.clear()

    @asynccontextmanager
    async def lock(self, key: str) -> AsyncIterator[None]:
        key_lock = self._key_locks.get(key)
        if key_lock is None:
            key_lock = self._key_locks[key] = _KeyLock()
        key_lock.users += 1
        try:
            async with key_lock.lock:
                yield
        finally:
            key_lock.users -= 1
            if key_lock.users == 0:
                del self._key_locks[key]

    async def ready(self) -> None:
        """Nothing to wait for in memory."""

    async def disconnect(self) -> None:
        """Disconnect from the storage backend (no-op for memory)."""

"""Cache with TTLs, atomic read-modify-write updates and priority hints."""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from typing import Any

from swrcache.adapters.base import AsyncCacheStore
from swrcache.duration import parse_optional_duration
from swrcache.exceptions import SerializationError
from swrcache.log import get_logger
from swrcache.serializer import JsonSerializer, Serializer
from swrcache.timer import Timer
from swrcache.types import UNCHANGED, CacheEntry, Duration, Priority

logger = get_logger(__name__)

# get_value(current) -> next value, or UNCHANGED to skip the write
Transform = Callable[[Any], Any | Awaitable[Any]]

_MISSING: Any = object()


class Cache:
    """Key/value cache over an :class:`AsyncCacheStore`.

    ``set`` is the only way entries change. With ``get_value`` it reads the
    current value, transforms it and writes the result while holding the
    store's lock for that key, so concurrent writers of one key never
    interleave.

    Usage:
        cache = Cache(store=AsyncMemoryStore(), timer=MonotonicTimer())
        await cache.set("k", value={"a": 1}, source="manual")
        await cache.set("k", get_value=lambda cur: {**cur, "a": 2}, source="manual")
    """

    def __init__(
        self,
        *,
        store: AsyncCacheStore,
        timer: Timer,
        serializer: Serializer | None = None,
    ) -> None:
        self._store = store
        self._timer = timer
        self._serializer = serializer or JsonSerializer()
        self._high_in_flight = 0
        self._no_high_writes = asyncio.Event()
        self._no_high_writes.set()

    @property
    def timer(self) -> Timer:
        return self._timer

    async def get(self, key: str) -> CacheEntry[Any] | None:
        """Current entry for ``key``; an unreadable payload counts as a miss."""
        data = await self._store.get(key)
        if data is None:
            return None
        try:
            return self._serializer.loads(data)
        except SerializationError:
            logger.warning("cache_entry_unreadable", key=key)
            return None

    async def set(
        self,
        key: str,
        *,
        value: Any = _MISSING,
        get_value: Transform | None = None,
        ttl: Duration | None = None,
        source: str,
        priority: Priority = Priority.HIGH,
    ) -> CacheEntry[Any] | None:
        """Write ``value`` or the result of ``get_value(current)``.

        Returns the written entry, or ``None`` when ``get_value`` returned
        ``UNCHANGED``. Exceptions from ``get_value`` propagate and nothing is
        written.
        """
        if (value is _MISSING) == (get_value is None):
            raise TypeError("Cache.set needs exactly one of value or get_value")

        ttl_ms = parse_optional_duration(ttl)

        if priority is Priority.LOW:
            await self._no_high_writes.wait()
            return await self._write(key, value, get_value, ttl_ms, source)

        self._high_in_flight += 1
        self._no_high_writes.clear()
        try:
            return await self._write(key, value, get_value, ttl_ms, source)
        finally:
            self._high_in_flight -= 1
            if self._high_in_flight == 0:
                self._no_high_writes.set()

    async def remove(self, key: str) -> None:
        await self._store.delete(key)

    async def flush(self) -> None:
        """Drop every entry. Meant for tests and operations."""
        await self._store.clear()

    async def keys(self) -> list[str]:
        return await self._store.keys()

    async def ready(self) -> None:
        await self._store.ready()

    async def quit(self) -> None:
        await self._store.disconnect()

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    async def _write(
        self,
        key: str,
        value: Any,
        get_value: Transform | None,
        ttl_ms: int | None,
        source: str,
    ) -> CacheEntry[Any] | None:
        async with self._store.lock(key):
            current = await self.get(key)

            if get_value is not None:
                value = get_value(current.value if current is not None else None)
                if inspect.isawaitable(value):
                    value = await value
                if value is UNCHANGED:
                    logger.debug("cache_set_skipped", key=key, source=source)
                    return None

            now = self._timer.now()
            if current is not None:
                now = max(now, current.last_modified)

            entry: CacheEntry[Any] = CacheEntry(
                value=value, last_modified=now, source=source
            )
            await self._store.set(key, self._serializer.dumps(entry), ttl_ms)
            logger.debug("cache_set", key=key, source=source, ttl_ms=ttl_ms)
            return entry

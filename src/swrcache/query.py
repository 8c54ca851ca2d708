"""Declarative typed queries over the cache.

Provides:
- QuerySpec: declaration of one cached read operation
- Query: the callable created from a spec via create_query()
- .get_with_custom_decoder(): narrower view of the same cached value
- .set_cache() / .remove_cache(): patch entries owned by the query
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from swrcache.decoder import Decoder, Invalid
from swrcache.duration import parse_optional_duration
from swrcache.environment import Environment
from swrcache.exceptions import InvalidValueError
from swrcache.log import get_logger
from swrcache.reporting import capture_error_event
from swrcache.types import UNCHANGED, CacheEntry, Duration, Priority

P = TypeVar("P")
V = TypeVar("V")
T = TypeVar("T")

logger = get_logger(__name__)

_MISSING: Any = object()


@dataclass(frozen=True)
class QuerySpec(Generic[P, V]):
    """Declares one cached read operation.

    ``get_payload`` is a partial inverse of ``get_key``: it returns ``None``
    for every key outside ``namespace``. Payloads themselves are never
    ``None``; parameterless queries use ``{}``.
    """

    namespace: str
    get_key: Callable[[P], str]
    get_payload: Callable[[str], P | None]
    get_current_value: Callable[[P, V | None], Awaitable[Any]]
    decoder: Decoder[V]
    enable_swr: bool = False
    stale_after: Duration | None = None
    max_age: Duration | None = None

    def __post_init__(self) -> None:
        if not self.namespace:
            raise ValueError("QuerySpec.namespace must not be empty")
        stale_after = self.stale_after_ms
        max_age = self.max_age_ms
        if stale_after is not None and max_age is not None and stale_after > max_age:
            raise ValueError(
                f"stale_after ({stale_after}ms) exceeds max_age ({max_age}ms) "
                f"for {self.namespace}"
            )

    @property
    def stale_after_ms(self) -> int | None:
        return parse_optional_duration(self.stale_after)

    @property
    def max_age_ms(self) -> int | None:
        return parse_optional_duration(self.max_age)

    def is_stale(self, entry: CacheEntry[Any], now: int) -> bool:
        """Whether a cached entry is old enough to be refreshed."""
        stale_after = self.stale_after_ms
        if stale_after is None:
            return False
        return now - entry.last_modified > stale_after


class Query(Generic[P, V]):
    """A cached read bound to an environment.

    Usage:
        get_uuid = create_query(spec, environment)
        uuid = await get_uuid({"id": 3})
    """

    def __init__(self, spec: QuerySpec[P, V], environment: Environment) -> None:
        self._spec = spec
        self._env = environment
        self._in_flight: dict[str, asyncio.Task[Any]] = {}

    @property
    def spec(self) -> QuerySpec[P, V]:
        return self._spec

    async def __call__(self, payload: P) -> V:
        return await self._query(payload, self._spec.decoder)

    async def get_with_custom_decoder(self, payload: P, decoder: Decoder[T]) -> T:
        """Read through the cache, then check the value against ``decoder``.

        The cached value is stored and refreshed with the spec's decoder;
        ``decoder`` only narrows what this call site accepts.
        """
        return await self._query(payload, decoder)

    async def set_cache(
        self,
        payloads: Iterable[P],
        *,
        value: Any = _MISSING,
        get_value: Callable[[V | None], Any] | None = None,
        source: str = "set_cache",
    ) -> None:
        """Patch the entry of every payload independently.

        ``get_value`` receives the decoded current value (or ``None``) and
        returns the new value or ``UNCHANGED``. A failing key is logged and
        reported; the remaining keys are still patched.
        """
        if (value is _MISSING) == (get_value is None):
            raise TypeError("set_cache needs exactly one of value or get_value")

        if get_value is None:
            constant = value

            def get_value(_current: V | None) -> Any:
                return constant

        keys = [self._spec.get_key(payload) for payload in payloads]
        results = await asyncio.gather(
            *(self._patch(key, get_value, source) for key in keys),
            return_exceptions=True,
        )
        for key, result in zip(keys, results, strict=True):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.error("cache_patch_failed", key=key, error=repr(result))
                capture_error_event(
                    self._env.reporter,
                    result,
                    location="set_cache",
                    context={"key": key, "source": source},
                )

    async def remove_cache(self, payload: P) -> None:
        await self._env.cache.remove(self._spec.get_key(payload))

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    async def _query(self, payload: P, decoder: Decoder[T]) -> T:
        key = self._spec.get_key(payload)
        entry = await self._env.cache.get(key)

        if entry is not None:
            raw = self._read_entry(key, entry)
            if raw is not _MISSING:
                swr_queue = self._env.swr_queue
                if (
                    swr_queue is not None
                    and self._spec.enable_swr
                    and self._spec.is_stale(entry, self._env.cache.timer.now())
                ):
                    self._env.spawn(
                        swr_queue.enqueue(key, entry),
                        location="query.enqueue",
                    )
                return self._narrow(key, raw, decoder)

        raw = await self._coalesce(key, lambda: self._fetch_and_store(payload, key))
        return self._narrow(key, raw, decoder)

    def _read_entry(self, key: str, entry: CacheEntry[Any]) -> Any:
        """The stored value, or ``_MISSING`` when it fails the spec decoder."""
        result = self._spec.decoder.decode(entry.value)
        if isinstance(result, Invalid):
            error = InvalidValueError(
                "Cached value failed its decoder",
                key=key,
                value=entry.value,
                decoder=self._spec.decoder.name,
                reason=result.reason,
            )
            logger.error("decode_error", key=key, decoder=self._spec.decoder.name)
            capture_error_event(
                self._env.reporter,
                error,
                location="query",
                context={"key": key, "decoder": self._spec.decoder.name},
                fingerprint=["decode-error", self._spec.namespace],
            )
            return _MISSING
        return entry.value

    def _narrow(self, key: str, raw: Any, decoder: Decoder[T]) -> T:
        result = decoder.decode(raw)
        if isinstance(result, Invalid):
            raise InvalidValueError(
                f"Value for {key} does not match {decoder.name}",
                key=key,
                value=raw,
                decoder=decoder.name,
                reason=result.reason,
            )
        return result.value

    async def _fetch_and_store(self, payload: P, key: str) -> Any:
        value = await self._spec.get_current_value(payload, None)
        stored = self.admit(key, value)
        await self._env.cache.set(
            key,
            value=stored,
            ttl=self._spec.max_age,
            source="query",
            priority=Priority.HIGH,
        )
        return stored

    def admit(self, key: str, value: Any) -> Any:
        """Validate ``value`` and return its storable form.

        Raises:
            InvalidValueError: ``value`` fails the spec's decoder.
        """
        result = self._spec.decoder.decode(value)
        if isinstance(result, Invalid):
            raise InvalidValueError(
                f"Invalid value received for {key}",
                key=key,
                value=value,
                decoder=self._spec.decoder.name,
                reason=result.reason,
            )
        return self._spec.decoder.dump(result.value)

    async def _patch(
        self, key: str, get_value: Callable[[V | None], Any], source: str
    ) -> None:
        def transform(raw: Any) -> Any:
            current: V | None = None
            if raw is not None:
                decoded = self._spec.decoder.decode(raw)
                if not isinstance(decoded, Invalid):
                    current = decoded.value
            next_value = get_value(current)
            if next_value is UNCHANGED:
                return UNCHANGED
            return self.admit(key, next_value)

        await self._env.cache.set(
            key,
            get_value=transform,
            ttl=self._spec.max_age,
            source=source,
            priority=Priority.HIGH,
        )

    async def _coalesce(self, key: str, fetch: Callable[[], Awaitable[Any]]) -> Any:
        """Coalesce concurrent misses for the same key (stampede protection)."""
        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(fetch())
            self._in_flight[key] = task
            task.add_done_callback(lambda _: self._in_flight.pop(key, None))
        return await asyncio.shield(task)

    def __repr__(self) -> str:
        return f"Query({self._spec.namespace})"


def create_query(spec: QuerySpec[P, V], environment: Environment) -> Query[P, V]:
    """Create a cached query from its spec."""
    return Query(spec, environment)


__all__ = ["Query", "QuerySpec", "create_query"]

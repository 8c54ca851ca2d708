"""Clocks used for staleness math."""

import time
from typing import Protocol, runtime_checkable

from swrcache.duration import parse_duration
from swrcache.types import Duration


@runtime_checkable
class Timer(Protocol):
    """Millisecond clock.

    Entry timestamps are compared by every process sharing a store, so a
    shared store needs :class:`WallClockTimer`.
    """

    def now(self) -> int:
        """Current time in ms."""
        ...


class WallClockTimer:
    """Unix epoch milliseconds. Comparable across processes and hosts."""

    def now(self) -> int:
        return time.time_ns() // 1_000_000


class MonotonicTimer:
    """Timer backed by ``time.monotonic``.

    Its origin is arbitrary per process, so only use it with a store that no
    other process reads or writes.
    """

    def now(self) -> int:
        return int(time.monotonic() * 1000)


class ManualTimer:
    """Deterministic timer that only moves when told to."""

    def __init__(self, start: int = 0) -> None:
        self._now = start

    def now(self) -> int:
        return self._now

    def set(self, now: int) -> None:
        if now < self._now:
            raise ValueError("ManualTimer cannot go backwards")
        self._now = now

    def advance(self, duration: Duration) -> None:
        self._now += parse_duration(duration)

    async def wait_for(self, duration: Duration) -> None:
        """Async flavour of ``advance`` to mirror a real wait."""
        self.advance(duration)

"""Shared collaborators handed to queries and mutations."""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from swrcache.cache import Cache
from swrcache.log import get_logger
from swrcache.reporting import ErrorReporter, LoggingErrorReporter, capture_error_event

if TYPE_CHECKING:
    from swrcache.swr_queue import SwrQueueLike

logger = get_logger(__name__)


@dataclass
class Environment:
    """What every query needs at call time.

    ``swr_queue`` is looked up on each call, so an environment can be created
    with the default empty queue, used to build the queries, and then given
    the real queue once the registry of those queries exists.
    """

    cache: Cache
    swr_queue: SwrQueueLike | None = None
    reporter: ErrorReporter = field(default_factory=LoggingErrorReporter)
    _background_tasks: set[asyncio.Task[None]] = field(
        default_factory=set, init=False, repr=False
    )

    def __post_init__(self) -> None:
        if self.swr_queue is None:
            from swrcache.swr_queue import EmptySwrQueue

            self.swr_queue = EmptySwrQueue()

    def spawn(self, coro: Coroutine[Any, Any, None], *, location: str) -> asyncio.Task[None]:
        """Run ``coro`` detached from the caller.

        Its failures only reach the log and the error reporter.
        """

        async def guarded() -> None:
            try:
                await coro
            except Exception as e:
                logger.exception("background_task_failed", location=location)
                capture_error_event(self.reporter, e, location=location)

        task = asyncio.create_task(guarded())
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        return task

    async def join(self) -> None:
        """Wait for all detached tasks spawned so far."""
        while self._background_tasks:
            await asyncio.gather(*list(self._background_tasks))

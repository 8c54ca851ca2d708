"""Stale-while-revalidate job queue.

The queue only decides whether a key deserves a refresh and submits the job;
the work itself happens in :mod:`swrcache.swr_worker`, possibly in another
process sharing the same queue backend and cache store.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

from swrcache.cache import Cache
from swrcache.exceptions import StalledJobsError
from swrcache.log import get_logger
from swrcache.query import QuerySpec
from swrcache.queue_backends.base import JobEvent, QueueBackend
from swrcache.registry import QueryRegistry
from swrcache.timer import Timer
from swrcache.types import BackoffPolicy, CacheEntry, Job

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class JobOptions:
    """Retry policy attached to every refresh job."""

    timeout_ms: int = 60_000
    max_retries: int = 5
    backoff: BackoffPolicy = field(default_factory=BackoffPolicy)


@dataclass(frozen=True, slots=True)
class Skip:
    reason: str


@dataclass(frozen=True, slots=True)
class Process:
    spec: QuerySpec[Any, Any]
    payload: Any
    entry: CacheEntry[Any]


ProcessDecision = Skip | Process


async def should_process_job(
    key: str,
    *,
    cache: Cache,
    registry: QueryRegistry,
    timer: Timer,
    entry: CacheEntry[Any] | None = None,
) -> ProcessDecision:
    """Decide whether ``key`` needs a background refresh right now.

    A skip is routine (e.g. another process refreshed the key already).
    """
    if entry is None:
        entry = await cache.get(key)
    if entry is None:
        return Skip("cache empty")
    resolved = registry.resolve(key)
    if resolved is None:
        return Skip("invalid key")
    if not resolved.spec.enable_swr:
        return Skip("SWR disabled")
    if not resolved.spec.is_stale(entry, timer.now()):
        return Skip("cache non-stale")
    return Process(spec=resolved.spec, payload=resolved.payload, entry=entry)


class SwrQueueLike(Protocol):
    """What queries need from a queue."""

    async def enqueue(self, key: str, entry: CacheEntry[Any] | None = None) -> Job | None:
        ...

    async def ready(self) -> None:
        ...

    async def healthy(self) -> None:
        ...

    async def quit(self) -> None:
        ...


class EmptySwrQueue:
    """Queue that never schedules anything."""

    async def enqueue(self, key: str, entry: CacheEntry[Any] | None = None) -> Job | None:
        return None

    async def ready(self) -> None:
        pass

    async def healthy(self) -> None:
        pass

    async def quit(self) -> None:
        pass


class SwrQueue:
    """Producer side of the refresh queue.

    Usage:
        queue = SwrQueue(cache=cache, timer=timer, registry=registry,
                         backend=MemoryQueueBackend())
        await queue.enqueue("de.example.org/api/uuid/3")
    """

    def __init__(
        self,
        *,
        cache: Cache,
        timer: Timer,
        registry: QueryRegistry,
        backend: QueueBackend,
        job_options: JobOptions | None = None,
    ) -> None:
        self._cache = cache
        self._timer = timer
        self._registry = registry
        self._backend = backend
        self._job_options = job_options or JobOptions()
        self._enqueued: set[str] = set()
        backend.subscribe(self._on_event)

    async def should_process_job(
        self, key: str, entry: CacheEntry[Any] | None = None
    ) -> ProcessDecision:
        return await should_process_job(
            key,
            cache=self._cache,
            registry=self._registry,
            timer=self._timer,
            entry=entry,
        )

    async def enqueue(self, key: str, entry: CacheEntry[Any] | None = None) -> Job | None:
        """Submit a refresh job for ``key`` if it is stale.

        Returns the submitted job, or ``None`` when the key was skipped or a
        job for it is already outstanding.
        """
        decision = await self.should_process_job(key, entry)
        if isinstance(decision, Skip):
            logger.debug("job_skipped", key=key, reason=decision.reason)
            return None

        # The job id is the key, so the backend keeps one job per key
        job = Job.for_key(
            key,
            timeout_ms=self._job_options.timeout_ms,
            max_retries=self._job_options.max_retries,
            backoff=self._job_options.backoff,
        )
        if not await self._backend.add(job):
            logger.debug("job_already_queued", key=key)
            return None

        self._enqueued.add(job.id)
        logger.debug("job_queued", key=key)
        return job

    async def ready(self) -> None:
        await self._backend.ready()

    async def healthy(self) -> None:
        """Raise :class:`StalledJobsError` when stalled jobs were detected."""
        health = await self._backend.check_health()
        if health.stalled:
            raise StalledJobsError(health.stalled)

    async def quit(self) -> None:
        await self._backend.close()

    def _on_event(self, event: JobEvent) -> None:
        # The worker reports failures; producers only log their own jobs
        if event.job_id not in self._enqueued:
            return
        if event.kind == "retrying":
            logger.debug("job_retrying", job_id=event.job_id, error=event.error)
            return

        self._enqueued.discard(event.job_id)
        if event.kind == "failed":
            logger.warning("job_failed", job_id=event.job_id, error=event.error)
        else:
            logger.debug("job_succeeded", job_id=event.job_id, result=event.result)

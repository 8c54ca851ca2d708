"""In-process job queue backend."""

from __future__ import annotations

import asyncio

from swrcache.log import get_logger
from swrcache.queue_backends.base import JobEvent, JobListener
from swrcache.types import Job, JobResult, QueueHealth

logger = get_logger(__name__)


class MemoryQueueBackend:
    """Asyncio job queue for a single process.

    Queue producers and workers must share the same instance.
    """

    def __init__(self) -> None:
        self._jobs: dict[str, Job] = {}
        self._waiting: asyncio.Queue[str] = asyncio.Queue()
        self._active: dict[str, float] = {}
        self._delayed: dict[str, asyncio.TimerHandle] = {}
        self._listeners: list[JobListener] = []
        self._closed = False

    async def add(self, job: Job) -> bool:
        if self._closed:
            raise RuntimeError("Queue backend is closed")
        if job.id in self._jobs:
            return False
        self._jobs[job.id] = job
        self._waiting.put_nowait(job.id)
        return True

    async def reserve(self) -> Job:
        while True:
            job_id = await self._waiting.get()
            job = self._jobs.get(job_id)
            if job is None or job_id in self._active:
                continue
            self._active[job_id] = asyncio.get_running_loop().time()
            return job

    async def complete(self, job: Job, result: JobResult) -> None:
        self._forget(job.id)
        self._emit(
            JobEvent(
                kind="succeeded",
                job_id=job.id,
                attempts=job.attempts,
                result=result.message,
            )
        )

    async def retry(self, job: Job, error: BaseException, delay_ms: int) -> None:
        self._active.pop(job.id, None)
        self._jobs[job.id] = job

        def promote() -> None:
            self._delayed.pop(job.id, None)
            if job.id in self._jobs:
                self._waiting.put_nowait(job.id)

        if delay_ms <= 0:
            self._waiting.put_nowait(job.id)
        else:
            self._delayed[job.id] = asyncio.get_running_loop().call_later(
                delay_ms / 1000, promote
            )
        self._emit(JobEvent.for_error("retrying", job, error))

    async def fail(self, job: Job, error: BaseException) -> None:
        self._forget(job.id)
        self._emit(JobEvent.for_error("failed", job, error))

    async def check_stalled(self, timeout_ms: int) -> int:
        now = asyncio.get_running_loop().time()
        stalled = [
            job_id
            for job_id, started in self._active.items()
            if (now - started) * 1000 > timeout_ms
        ]
        for job_id in stalled:
            del self._active[job_id]
            self._waiting.put_nowait(job_id)
        if stalled:
            logger.warning("stalled_jobs_requeued", count=len(stalled))
        return len(stalled)

    async def check_health(self) -> QueueHealth:
        return QueueHealth(
            waiting=len(self._jobs) - len(self._active) - len(self._delayed),
            active=len(self._active),
            delayed=len(self._delayed),
            stalled=self._count_overdue(),
        )

    def subscribe(self, listener: JobListener) -> None:
        self._listeners.append(listener)

    async def ready(self) -> None:
        """Nothing to wait for in memory."""

    async def close(self) -> None:
        self._closed = True
        for handle in self._delayed.values():
            handle.cancel()
        self._delayed.clear()

    def _count_overdue(self) -> int:
        now = asyncio.get_running_loop().time()
        return sum(
            1
            for job_id, started in self._active.items()
            if (now - started) * 1000 > self._jobs[job_id].timeout_ms
        )

    def _forget(self, job_id: str) -> None:
        self._jobs.pop(job_id, None)
        self._active.pop(job_id, None)
        handle = self._delayed.pop(job_id, None)
        if handle is not None:
            handle.cancel()

    def _emit(self, event: JobEvent) -> None:
        for listener in self._listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("job_listener_failed", job_id=event.job_id)

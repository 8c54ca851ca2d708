"""Base protocol for job queue backends."""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import asdict, dataclass
from typing import Literal, Protocol, runtime_checkable

from swrcache.types import Job, JobResult, QueueHealth

JobEventKind = Literal["succeeded", "retrying", "failed"]


@dataclass(frozen=True, slots=True)
class JobEvent:
    """A job lifecycle transition, as seen by queue listeners."""

    kind: JobEventKind
    job_id: str
    attempts: int
    result: str | None = None
    error: str | None = None
    error_type: str | None = None

    @classmethod
    def for_error(
        cls, kind: JobEventKind, job: Job, error: BaseException
    ) -> JobEvent:
        return cls(
            kind=kind,
            job_id=job.id,
            attempts=job.attempts,
            error=str(error),
            error_type=type(error).__name__,
        )

    def to_json(self) -> str:
        return json.dumps(asdict(self))

    @classmethod
    def from_json(cls, data: bytes | str) -> JobEvent:
        if isinstance(data, bytes):
            data = data.decode("utf-8")
        return cls(**json.loads(data))


JobListener = Callable[[JobEvent], None]


@runtime_checkable
class QueueBackend(Protocol):
    """Durable job storage with id-based deduplication.

    A job id stays taken from ``add`` until the job completes or fails for
    good; adding a job with a taken id is a no-op returning ``False``.
    """

    async def add(self, job: Job) -> bool:
        """Submit a job unless one with the same id is outstanding."""
        ...

    async def reserve(self) -> Job:
        """Wait for the next runnable job and mark it active."""
        ...

    async def complete(self, job: Job, result: JobResult) -> None:
        """Remove a finished job and emit ``succeeded``."""
        ...

    async def retry(self, job: Job, error: BaseException, delay_ms: int) -> None:
        """Put a failed job back after ``delay_ms`` and emit ``retrying``."""
        ...

    async def fail(self, job: Job, error: BaseException) -> None:
        """Remove a job that will not be retried and emit ``failed``."""
        ...

    async def check_stalled(self, timeout_ms: int) -> int:
        """Requeue jobs active for longer than ``timeout_ms``; return how many."""
        ...

    async def check_health(self) -> QueueHealth:
        """Current counters, read from state shared by every process.

        ``stalled`` counts active jobs running longer than their timeout.
        """
        ...

    def subscribe(self, listener: JobListener) -> None:
        """Register a listener for job events."""
        ...

    async def ready(self) -> None:
        """Wait until the backend accepts commands."""
        ...

    async def close(self) -> None:
        """Release connections and stop background tasks."""
        ...

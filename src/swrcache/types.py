"""Core types for the swrcache library."""

from dataclasses import dataclass, field, replace
from datetime import timedelta
from enum import Enum
from typing import Any, Final, Generic, Literal, TypeVar

T = TypeVar("T")

# "30s", "5m", "1h30m", a timedelta, or milliseconds
Duration = str | int | timedelta


class Priority(Enum):
    """Hint for the cache when writes compete for the store."""

    HIGH = "high"
    LOW = "low"


class _Unchanged:
    """Sentinel returned by cache transforms that want to skip the write."""

    _instance: "_Unchanged | None" = None

    def __new__(cls) -> "_Unchanged":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNCHANGED"

    def __bool__(self) -> bool:
        return False


# None is a legitimate cached value, so "leave the entry alone" needs its own marker.
UNCHANGED: Final = _Unchanged()


@dataclass(frozen=True, slots=True)
class CacheEntry(Generic[T]):
    """A cached value with metadata."""

    value: T
    last_modified: int  # Timer ms
    source: str


BackoffStrategy = Literal["exponential", "fixed", "immediate"]


@dataclass(frozen=True, slots=True)
class BackoffPolicy:
    """How long a failed job waits before its next attempt."""

    strategy: BackoffStrategy = "exponential"
    delay_ms: int = 10_000

    def delay_for(self, attempt: int) -> int:
        """Delay in ms before retrying after the given (1-based) failed attempt."""
        if self.strategy == "immediate":
            return 0
        if self.strategy == "fixed":
            return self.delay_ms
        return self.delay_ms * 2 ** max(attempt - 1, 0)


@dataclass(frozen=True, slots=True)
class Job:
    """A deduplicated background refresh of one cache key.

    The job id is the cache key, so a queue holds at most one job per key.
    """

    id: str
    payload: dict[str, Any]
    timeout_ms: int = 60_000
    max_retries: int = 5
    backoff: BackoffPolicy = field(default_factory=BackoffPolicy)
    attempts: int = 0

    @classmethod
    def for_key(
        cls,
        key: str,
        *,
        timeout_ms: int = 60_000,
        max_retries: int = 5,
        backoff: BackoffPolicy | None = None,
    ) -> "Job":
        return cls(
            id=key,
            payload={"key": key},
            timeout_ms=timeout_ms,
            max_retries=max_retries,
            backoff=backoff or BackoffPolicy(),
        )

    @property
    def key(self) -> str:
        return str(self.payload["key"])

    def next_attempt(self) -> "Job":
        return replace(self, attempts=self.attempts + 1)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "payload": self.payload,
            "timeout": self.timeout_ms,
            "retries": self.max_retries,
            "backoff": {
                "strategy": self.backoff.strategy,
                "delay": self.backoff.delay_ms,
            },
            "attempts": self.attempts,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Job":
        backoff = data.get("backoff") or {}
        return cls(
            id=data["id"],
            payload=data["payload"],
            timeout_ms=data.get("timeout", 60_000),
            max_retries=data.get("retries", 5),
            backoff=BackoffPolicy(
                strategy=backoff.get("strategy", "exponential"),
                delay_ms=backoff.get("delay", 10_000),
            ),
            attempts=data.get("attempts", 0),
        )


JobStatus = Literal["succeeded", "skipped"]


@dataclass(frozen=True, slots=True)
class JobResult:
    """Outcome of a job that did not fail."""

    status: JobStatus
    message: str


@dataclass(frozen=True, slots=True)
class QueueHealth:
    """Snapshot of a job queue's counters."""

    waiting: int
    active: int
    delayed: int
    stalled: int = 0

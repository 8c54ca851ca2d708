"""Exceptions raised by swrcache."""

from __future__ import annotations

from typing import Any

__all__ = [
    "INVALID_VALUE_RECEIVED",
    "InvalidValueError",
    "JobExhaustedError",
    "JobFailedError",
    "JobTimeoutError",
    "SerializationError",
    "StalledJobsError",
    "SwrCacheError",
    "UpstreamError",
]

INVALID_VALUE_RECEIVED = "SWR-Queue: Invalid value received from data source."


class SwrCacheError(Exception):
    """Base exception for all swrcache errors."""


class SerializationError(SwrCacheError):
    """Raised when a stored payload is not a valid cache envelope."""


class InvalidValueError(SwrCacheError):
    """A value failed its decoder and was not admitted into the cache."""

    def __init__(
        self,
        message: str,
        *,
        key: str | None = None,
        value: Any = None,
        decoder: str | None = None,
        reason: str | None = None,
    ) -> None:
        super().__init__(message)
        self.key = key
        self.value = value
        self.decoder = decoder
        self.reason = reason


class UpstreamError(SwrCacheError):
    """The system-of-record answered with an unexpected status code."""

    def __init__(self, status_code: int, message: Any) -> None:
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.upstream_message = message


class JobTimeoutError(SwrCacheError):
    """A refresh job ran longer than its timeout."""

    def __init__(self, job_id: str, timeout_ms: int) -> None:
        super().__init__(f"Job {job_id} timed out after {timeout_ms}ms")
        self.job_id = job_id
        self.timeout_ms = timeout_ms


class JobFailedError(SwrCacheError):
    """A job attempt failed, as reported through a queue event."""

    def __init__(self, job_id: str, error_type: str | None, message: str | None) -> None:
        super().__init__(message or "Job failed")
        self.job_id = job_id
        self.error_type = error_type


class JobExhaustedError(SwrCacheError):
    """A refresh job failed on every allowed attempt."""

    def __init__(self, job_id: str, attempts: int, last_error: BaseException) -> None:
        super().__init__(
            f"Job {job_id} exhausted after {attempts} attempts: {last_error}"
        )
        self.job_id = job_id
        self.attempts = attempts
        self.last_error = last_error


class StalledJobsError(SwrCacheError):
    """The queue has jobs whose worker stopped reporting progress."""

    def __init__(self, stalled: int) -> None:
        super().__init__(f"{stalled} stalled job(s) detected")
        self.stalled = stalled

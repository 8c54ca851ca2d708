"""Consumer side of the refresh queue."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Iterable
from typing import Any

from swrcache.cache import Cache
from swrcache.decoder import Invalid
from swrcache.exceptions import (
    INVALID_VALUE_RECEIVED,
    InvalidValueError,
    JobExhaustedError,
    JobFailedError,
    JobTimeoutError,
    StalledJobsError,
)
from swrcache.log import get_logger
from swrcache.query import QuerySpec
from swrcache.queue_backends.base import QueueBackend
from swrcache.registry import QueryRegistry
from swrcache.reporting import ErrorReporter, LoggingErrorReporter, capture_error_event
from swrcache.swr_queue import Skip, should_process_job
from swrcache.timer import Timer
from swrcache.types import Job, JobResult, Priority

logger = get_logger(__name__)


class SwrWorker:
    """Drains the refresh queue with ``concurrency`` consumer tasks.

    Each job re-checks staleness, refetches the value, validates it and
    stores it at low priority. A value failing its decoder is reported and
    fails the job, leaving the previous entry in place.

    Failed attempts are reported here, once each, whichever process queued
    the job. Producers only log the outcome of their own jobs.

    Usage:
        worker = SwrWorker(cache=cache, timer=timer, registry=registry,
                           backend=backend, concurrency=4)
        await worker.start()
        ...
        await worker.quit()
    """

    def __init__(
        self,
        *,
        cache: Cache,
        timer: Timer,
        registry: QueryRegistry,
        backend: QueueBackend,
        reporter: ErrorReporter | None = None,
        concurrency: int = 1,
        delay_ms: int | None = None,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self._cache = cache
        self._timer = timer
        self._registry = registry
        self._backend = backend
        self._reporter = reporter or LoggingErrorReporter()
        self._concurrency = concurrency
        self._delay_ms = delay_ms
        self._tasks: list[asyncio.Task[None]] = []

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    async def start(self) -> None:
        """Connect and spawn the consumer tasks."""
        await self.ready()
        if self._tasks:
            return
        self._tasks = [
            asyncio.create_task(self._consume(), name=f"swr-worker-{i}")
            for i in range(self._concurrency)
        ]
        logger.info("worker_started", concurrency=self._concurrency)

    async def ready(self) -> None:
        await self._backend.ready()
        await self._cache.ready()

    async def healthy(self) -> None:
        """Raise :class:`StalledJobsError` when stalled jobs were detected."""
        health = await self._backend.check_health()
        if health.stalled:
            raise StalledJobsError(health.stalled)

    async def check_stalled_jobs(self, timeout_ms: int) -> int:
        return await self._backend.check_stalled(timeout_ms)

    async def quit(self) -> None:
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        await self._backend.close()
        logger.info("worker_stopped")

    async def process_job(self, job: Job) -> JobResult:
        """Refresh the job's key once, without retries or timeout."""
        key = job.key
        decision = await should_process_job(
            key, cache=self._cache, registry=self._registry, timer=self._timer
        )
        if isinstance(decision, Skip):
            return JobResult("skipped", f"Skipped update because {decision.reason}")

        await self._refresh(key, decision.spec, decision.payload)
        return JobResult("succeeded", "Updated because stale")

    async def update_keys(self, keys: Iterable[str]) -> dict[str, JobResult | Exception]:
        """Refresh ``keys`` now, stale or not.

        Used by operators to heal entries whose jobs were exhausted. Keys no
        registered query recognizes are skipped.
        """
        results: dict[str, JobResult | Exception] = {}
        for key in keys:
            resolved = self._registry.resolve(key)
            if resolved is None:
                results[key] = JobResult("skipped", "Skipped update because invalid key")
                continue
            try:
                await self._refresh(key, resolved.spec, resolved.payload)
            except Exception as e:
                logger.warning("update_key_failed", key=key, error=repr(e))
                results[key] = e
            else:
                results[key] = JobResult("succeeded", "Updated on request")
        return results

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    async def _refresh(self, key: str, spec: QuerySpec[Any, Any], payload: Any) -> None:
        async def fetch_and_decode(current: Any) -> Any:
            previous = None
            if current is not None:
                decoded_current = spec.decoder.decode(current)
                if not isinstance(decoded_current, Invalid):
                    previous = decoded_current.value

            value = await spec.get_current_value(payload, previous)
            decoded = spec.decoder.decode(value)
            if isinstance(decoded, Invalid):
                error = InvalidValueError(
                    INVALID_VALUE_RECEIVED,
                    key=key,
                    value=value,
                    decoder=spec.decoder.name,
                    reason=decoded.reason,
                )
                capture_error_event(
                    self._reporter,
                    error,
                    location="SWR worker",
                    context={
                        "key": key,
                        "invalidValue": value,
                        "decoder": spec.decoder.name,
                    },
                    fingerprint=[
                        "invalid-value",
                        "swr",
                        json.dumps(value, default=str, sort_keys=True),
                    ],
                )
                raise error
            return spec.decoder.dump(decoded.value)

        await self._cache.set(
            key,
            get_value=fetch_and_decode,
            ttl=spec.max_age,
            source="worker",
            priority=Priority.LOW,
        )

    async def _consume(self) -> None:
        while True:
            try:
                job = await self._backend.reserve()
                await self._run(job)
            except Exception:
                logger.exception("worker_loop_error")
                await asyncio.sleep(1)
                continue
            if self._delay_ms:
                await asyncio.sleep(self._delay_ms / 1000)

    async def _run(self, job: Job) -> None:
        attempt = job.next_attempt()
        try:
            result = await asyncio.wait_for(
                self.process_job(attempt), timeout=job.timeout_ms / 1000
            )
        except asyncio.TimeoutError:
            await self._handle_failure(attempt, JobTimeoutError(job.id, job.timeout_ms))
        except Exception as e:
            await self._handle_failure(attempt, e)
        else:
            logger.debug("job_processed", job_id=job.id, result=result.message)
            await self._backend.complete(attempt, result)

    async def _handle_failure(self, job: Job, error: Exception) -> None:
        # attempts counts the first run, so max_retries allows max_retries + 1 runs
        if job.attempts <= job.max_retries:
            delay_ms = job.backoff.delay_for(job.attempts)
            logger.info(
                "job_retrying",
                job_id=job.id,
                attempt=job.attempts,
                delay_ms=delay_ms,
                error=repr(error),
            )
            self._report_failure("retrying", job, error)
            await self._backend.retry(job, error, delay_ms)
            return

        exhausted = JobExhaustedError(job.id, job.attempts, error)
        logger.error("job_exhausted", job_id=job.id, attempts=job.attempts)
        self._report_failure("failed", job, exhausted)
        await self._backend.fail(job, exhausted)

    def _report_failure(self, status: str, job: Job, error: Exception) -> None:
        # Invalid values were reported with their context when they arrived
        if str(error) == INVALID_VALUE_RECEIVED:
            return
        capture_error_event(
            self._reporter,
            JobFailedError(job.id, type(error).__name__, str(error)),
            location="SWR worker",
            context={"jobStatus": status, "attempts": job.attempts},
        )

"""Wiring of Redis-backed components from :class:`Settings`.

Typical API process:

    settings = Settings()
    environment = create_environment(settings)
    queries = build_my_queries(environment)
    await attach_swr_queue(environment, QueryRegistry(queries), settings)

Typical worker process:

    await run_worker(settings, lambda env: build_my_queries(env))
"""

from __future__ import annotations

import asyncio
import signal
from collections.abc import Callable, Iterable
from contextlib import suppress
from typing import Any

from swrcache.adapters.redis import AsyncRedisStore
from swrcache.cache import Cache
from swrcache.config import Settings
from swrcache.environment import Environment
from swrcache.log import configure_logging, get_logger
from swrcache.query import Query
from swrcache.queue_backends.redis import RedisQueueBackend
from swrcache.registry import QueryRegistry
from swrcache.reporting import ErrorReporter
from swrcache.swr_queue import JobOptions, SwrQueue
from swrcache.swr_worker import SwrWorker
from swrcache.timer import Timer, WallClockTimer

logger = get_logger(__name__)


def create_cache(settings: Settings, *, timer: Timer | None = None) -> Cache:
    return Cache(
        store=AsyncRedisStore.from_url(settings.redis_url, prefix=settings.key_prefix),
        timer=timer or WallClockTimer(),
    )


def create_queue_backend(settings: Settings) -> RedisQueueBackend:
    return RedisQueueBackend.from_url(
        settings.redis_url, name=settings.queue_name, prefix=settings.key_prefix
    )


def create_environment(
    settings: Settings, *, reporter: ErrorReporter | None = None
) -> Environment:
    """Environment with a Redis cache and no SWR queue yet."""
    cache = create_cache(settings)
    if reporter is None:
        return Environment(cache=cache)
    return Environment(cache=cache, reporter=reporter)


async def attach_swr_queue(
    environment: Environment, registry: QueryRegistry, settings: Settings
) -> SwrQueue:
    """Give ``environment`` a connected Redis-backed SWR queue for ``registry``."""
    queue = SwrQueue(
        cache=environment.cache,
        timer=environment.cache.timer,
        registry=registry,
        backend=create_queue_backend(settings),
        job_options=JobOptions(
            timeout_ms=settings.job_timeout_ms,
            max_retries=settings.job_retries,
            backoff=settings.backoff,
        ),
    )
    await queue.ready()
    environment.swr_queue = queue
    return queue


async def run_worker(
    settings: Settings,
    build_queries: Callable[[Environment], Iterable[Query[Any, Any]]],
    *,
    reporter: ErrorReporter | None = None,
) -> None:
    """Run an SWR worker until SIGINT/SIGTERM."""
    configure_logging(settings.log_level, json=settings.log_json)

    environment = create_environment(settings, reporter=reporter)
    registry = QueryRegistry(build_queries(environment))
    worker = SwrWorker(
        cache=environment.cache,
        timer=environment.cache.timer,
        registry=registry,
        backend=create_queue_backend(settings),
        reporter=environment.reporter,
        concurrency=settings.worker_concurrency,
        delay_ms=settings.worker_delay_ms,
    )

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop.set)

    await worker.start()
    logger.info("worker_running", queries=len(registry))
    try:
        while not stop.is_set():
            with suppress(asyncio.TimeoutError):
                await asyncio.wait_for(
                    stop.wait(), timeout=settings.stall_interval_ms / 1000
                )
            # A job still running within its timeout is not stalled
            await worker.check_stalled_jobs(
                settings.job_timeout_ms + settings.stall_interval_ms
            )
    finally:
        await worker.quit()
        await environment.cache.quit()

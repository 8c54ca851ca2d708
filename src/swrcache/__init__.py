"""swrcache - typed stale-while-revalidate cache over a system-of-record."""

from contextlib import suppress

# Stores (async only)
from swrcache.adapters import AsyncCacheStore, AsyncMemoryStore

# Cache
from swrcache.cache import Cache
from swrcache.config import Settings
from swrcache.decoder import Decoder, Invalid, Valid

# Duration parsing
from swrcache.duration import parse_duration
from swrcache.environment import Environment
from swrcache.exceptions import (
    InvalidValueError,
    JobExhaustedError,
    JobTimeoutError,
    StalledJobsError,
    SwrCacheError,
    UpstreamError,
)

# Query / mutation API
from swrcache.mutation import CachePatch, Mutation, MutationSpec, create_mutation
from swrcache.query import Query, QuerySpec, create_query
from swrcache.queue_backends import MemoryQueueBackend, QueueBackend
from swrcache.registry import QueryRegistry
from swrcache.reporting import ErrorEvent, ErrorReporter, RecordingErrorReporter

# SWR queue and worker
from swrcache.swr_queue import EmptySwrQueue, JobOptions, SwrQueue
from swrcache.swr_worker import SwrWorker
from swrcache.timer import ManualTimer, MonotonicTimer, Timer, WallClockTimer

# Core types
from swrcache.types import (
    UNCHANGED,
    BackoffPolicy,
    CacheEntry,
    Duration,
    Job,
    JobResult,
    Priority,
)

# Optional imports - only available when dependencies are installed
with suppress(ImportError):
    from swrcache.adapters import AsyncRedisStore

with suppress(ImportError):
    from swrcache.queue_backends import RedisQueueBackend

with suppress(ImportError):
    from swrcache.datasource import MessageClient

__version__ = "0.1.0"

__all__ = [
    "UNCHANGED",
    "AsyncCacheStore",
    "AsyncMemoryStore",
    "AsyncRedisStore",
    "BackoffPolicy",
    "Cache",
    "CacheEntry",
    "CachePatch",
    "Decoder",
    "Duration",
    "EmptySwrQueue",
    "Environment",
    "ErrorEvent",
    "ErrorReporter",
    "Invalid",
    "InvalidValueError",
    "Job",
    "JobExhaustedError",
    "JobOptions",
    "JobResult",
    "JobTimeoutError",
    "ManualTimer",
    "MemoryQueueBackend",
    "MessageClient",
    "MonotonicTimer",
    "Mutation",
    "MutationSpec",
    "Priority",
    "Query",
    "QueryRegistry",
    "QuerySpec",
    "QueueBackend",
    "RecordingErrorReporter",
    "RedisQueueBackend",
    "Settings",
    "StalledJobsError",
    "SwrCacheError",
    "SwrQueue",
    "SwrWorker",
    "Timer",
    "UpstreamError",
    "Valid",
    "WallClockTimer",
    "create_mutation",
    "create_query",
    "parse_duration",
]

"""Job queue backends for the SWR queue and worker."""

from contextlib import suppress

from swrcache.queue_backends.base import JobEvent, JobListener, QueueBackend
from swrcache.queue_backends.memory import MemoryQueueBackend

# Optional backends - only available when dependencies are installed
with suppress(ImportError):
    from swrcache.queue_backends.redis import RedisQueueBackend

__all__ = [
    "JobEvent",
    "JobListener",
    "MemoryQueueBackend",
    "QueueBackend",
    "RedisQueueBackend",
]

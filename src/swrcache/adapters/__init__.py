"""Storage backends for the cache."""

from contextlib import suppress

from swrcache.adapters.base import AsyncCacheStore
from swrcache.adapters.memory import AsyncMemoryStore

# Optional stores - only available when dependencies are installed
with suppress(ImportError):
    from swrcache.adapters.redis import AsyncRedisStore

__all__ = [
    "AsyncCacheStore",
    "AsyncMemoryStore",
    "AsyncRedisStore",
]

"""Redis job queue backend."""

from __future__ import annotations

import asyncio
import json
import time
from contextlib import suppress
from typing import Any

from swrcache.log import get_logger
from swrcache.queue_backends.base import JobEvent, JobListener
from swrcache.types import Job, JobResult, QueueHealth

logger = get_logger(__name__)


def _now_ms() -> int:
    # Wall clock: several processes compare these timestamps
    return int(time.time() * 1000)


def _text(value: bytes | str) -> str:
    return value.decode("utf-8") if isinstance(value, bytes) else value


# KEYS: jobs, waiting, active, delayed. ARGV: job id, job JSON.
# A known id that is neither waiting, active nor delayed can never run again,
# so it is queued afresh instead of blocking the key forever.
_ADD_SCRIPT = """
if redis.call("HSETNX", KEYS[1], ARGV[1], ARGV[2]) == 1 then
  redis.call("LPUSH", KEYS[2], ARGV[1])
  return 1
end
if redis.call("HEXISTS", KEYS[3], ARGV[1]) == 0
    and not redis.call("ZSCORE", KEYS[4], ARGV[1])
    and not redis.call("LPOS", KEYS[2], ARGV[1]) then
  redis.call("HSET", KEYS[1], ARGV[1], ARGV[2])
  redis.call("LPUSH", KEYS[2], ARGV[1])
  return 1
end
return 0
"""

# KEYS: jobs, waiting, active, delayed. ARGV: now in ms.
# Promotes due delayed jobs, then moves the next runnable id to active.
_RESERVE_SCRIPT = """
local due = redis.call("ZRANGEBYSCORE", KEYS[4], 0, ARGV[1])
for _, id in ipairs(due) do
  redis.call("ZREM", KEYS[4], id)
  redis.call("LPUSH", KEYS[2], id)
end
while true do
  local id = redis.call("RPOP", KEYS[2])
  if not id then
    return nil
  end
  local data = redis.call("HGET", KEYS[1], id)
  if data and redis.call("HSETNX", KEYS[3], id, ARGV[1]) == 1 then
    return data
  end
end
"""

# KEYS: active, waiting. ARGV: cutoff in ms.
_REQUEUE_STALLED_SCRIPT = """
local active = redis.call("HGETALL", KEYS[1])
local count = 0
for i = 1, #active, 2 do
  if tonumber(active[i + 1]) < tonumber(ARGV[1]) then
    redis.call("HDEL", KEYS[1], active[i])
    redis.call("LPUSH", KEYS[2], active[i])
    count = count + 1
  end
end
return count
"""


class RedisQueueBackend:
    """Job queue shared by API processes and workers through Redis.

    Layout under ``{prefix}:{name}``:
    - ``jobs``: hash of job id -> job JSON (the dedup set)
    - ``waiting``: list of runnable job ids
    - ``active``: hash of job id -> start time in ms
    - ``delayed``: sorted set of job ids scored by their run-at time
    - ``events``: pubsub channel for job events

    Every move between these structures runs in one Lua script or MULTI
    transaction, so a crashed process never leaves a job half-moved.
    """

    def __init__(
        self,
        client: Any,  # redis.asyncio.Redis
        *,
        name: str = "swr",
        prefix: str = "swrcache",
        poll_timeout: float = 1.0,
    ) -> None:
        self._client = client
        self._base = f"{prefix}:{name}"
        self._poll_timeout = poll_timeout
        self._listeners: list[JobListener] = []
        self._listen_task: asyncio.Task[None] | None = None
        self._add_script = client.register_script(_ADD_SCRIPT)
        self._reserve_script = client.register_script(_RESERVE_SCRIPT)
        self._requeue_stalled_script = client.register_script(_REQUEUE_STALLED_SCRIPT)

    @classmethod
    def from_url(cls, url: str, **kwargs: Any) -> RedisQueueBackend:
        import redis.asyncio

        return cls(redis.asyncio.Redis.from_url(url, decode_responses=False), **kwargs)

    def _key(self, name: str) -> str:
        return f"{self._base}:{name}"

    @property
    def _queue_keys(self) -> list[str]:
        return [
            self._key("jobs"),
            self._key("waiting"),
            self._key("active"),
            self._key("delayed"),
        ]

    async def add(self, job: Job) -> bool:
        added = await self._add_script(
            keys=self._queue_keys, args=[job.id, json.dumps(job.to_dict())]
        )
        return bool(added)

    async def reserve(self) -> Job:
        waiting = self._key("waiting")
        while True:
            data = await self._reserve_script(keys=self._queue_keys, args=[_now_ms()])
            if data is not None:
                return Job.from_dict(json.loads(_text(data)))
            # Rotating the list onto itself only waits for an id to arrive
            await self._client.blmove(
                waiting, waiting, self._poll_timeout, src="RIGHT", dest="RIGHT"
            )

    async def complete(self, job: Job, result: JobResult) -> None:
        await self._forget(job.id)
        await self._publish(
            JobEvent(
                kind="succeeded",
                job_id=job.id,
                attempts=job.attempts,
                result=result.message,
            )
        )

    async def retry(self, job: Job, error: BaseException, delay_ms: int) -> None:
        async with self._client.pipeline(transaction=True) as pipe:
            pipe.hset(self._key("jobs"), job.id, json.dumps(job.to_dict()))
            pipe.hdel(self._key("active"), job.id)
            if delay_ms <= 0:
                pipe.lpush(self._key("waiting"), job.id)
            else:
                pipe.zadd(self._key("delayed"), {job.id: _now_ms() + delay_ms})
            await pipe.execute()
        await self._publish(JobEvent.for_error("retrying", job, error))

    async def fail(self, job: Job, error: BaseException) -> None:
        await self._forget(job.id)
        await self._publish(JobEvent.for_error("failed", job, error))

    async def check_stalled(self, timeout_ms: int) -> int:
        requeued = int(
            await self._requeue_stalled_script(
                keys=[self._key("active"), self._key("waiting")],
                args=[_now_ms() - timeout_ms],
            )
        )
        if requeued:
            logger.warning("stalled_jobs_requeued", count=requeued)
        return requeued

    async def check_health(self) -> QueueHealth:
        async with self._client.pipeline(transaction=False) as pipe:
            pipe.llen(self._key("waiting"))
            pipe.hgetall(self._key("active"))
            pipe.zcard(self._key("delayed"))
            waiting, active, delayed = await pipe.execute()
        return QueueHealth(
            waiting=waiting,
            active=len(active),
            delayed=delayed,
            stalled=await self._count_overdue(active),
        )

    def subscribe(self, listener: JobListener) -> None:
        self._listeners.append(listener)

    async def ready(self) -> None:
        await self._client.ping()
        if self._listeners and self._listen_task is None:
            pubsub = self._client.pubsub()
            await pubsub.subscribe(self._key("events"))
            self._listen_task = asyncio.create_task(self._listen(pubsub))

    async def close(self) -> None:
        if self._listen_task is not None:
            self._listen_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._listen_task
            self._listen_task = None
        await self._client.aclose()

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    async def _count_overdue(self, active: dict[Any, Any]) -> int:
        """Active jobs running longer than their own timeout.

        The worker abandons an attempt at its timeout, so an older active
        entry means its worker is gone.
        """
        if not active:
            return 0
        job_ids = list(active)
        jobs = await self._client.hmget(self._key("jobs"), job_ids)
        now = _now_ms()
        overdue = 0
        for job_id, data in zip(job_ids, jobs, strict=True):
            if data is None:
                continue
            job = Job.from_dict(json.loads(_text(data)))
            if now - int(active[job_id]) > job.timeout_ms:
                overdue += 1
        return overdue

    async def _forget(self, job_id: str) -> None:
        async with self._client.pipeline(transaction=True) as pipe:
            pipe.hdel(self._key("jobs"), job_id)
            pipe.hdel(self._key("active"), job_id)
            pipe.zrem(self._key("delayed"), job_id)
            await pipe.execute()

    async def _publish(self, event: JobEvent) -> None:
        await self._client.publish(self._key("events"), event.to_json())

    async def _listen(self, pubsub: Any) -> None:
        try:
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                event = JobEvent.from_json(message["data"])
                for listener in self._listeners:
                    try:
                        listener(event)
                    except Exception:
                        logger.exception("job_listener_failed", job_id=event.job_id)
        finally:
            await pubsub.aclose()

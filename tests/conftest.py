"""Shared pytest fixtures."""

from __future__ import annotations

from typing import Any

import pytest
from typing_extensions import TypedDict

from swrcache import (
    AsyncMemoryStore,
    BackoffPolicy,
    Cache,
    Decoder,
    Environment,
    JobOptions,
    ManualTimer,
    MemoryQueueBackend,
    QueryRegistry,
    QuerySpec,
    RecordingErrorReporter,
    SwrQueue,
    create_query,
)

UUID_NAMESPACE = "de.example.org/api/uuid/"


class Uuid(TypedDict):
    id: int
    trashed: bool


class FakeSource:
    """Stands in for the system-of-record."""

    def __init__(self) -> None:
        self.values: dict[int, Any] = {}
        self.calls: list[tuple[int, Any]] = []
        self.error: Exception | None = None

    async def get_uuid(self, payload: dict[str, int], previous: Any) -> Any:
        self.calls.append((payload["id"], previous))
        if self.error is not None:
            raise self.error
        return self.values.get(payload["id"])


def uuid_key(payload: dict[str, int]) -> str:
    return f"{UUID_NAMESPACE}{payload['id']}"


def uuid_payload(key: str) -> dict[str, int] | None:
    if not key.startswith(UUID_NAMESPACE):
        return None
    suffix = key[len(UUID_NAMESPACE) :]
    if not suffix.isdigit():
        return None
    return {"id": int(suffix)}


def make_uuid_spec(source: FakeSource, **overrides: Any) -> QuerySpec[dict[str, int], Uuid]:
    options: dict[str, Any] = {
        "namespace": UUID_NAMESPACE,
        "get_key": uuid_key,
        "get_payload": uuid_payload,
        "get_current_value": source.get_uuid,
        "decoder": Decoder(Uuid),
        "enable_swr": True,
        "stale_after": "1m",
        "max_age": "1h",
    }
    options.update(overrides)
    return QuerySpec(**options)


@pytest.fixture
def timer() -> ManualTimer:
    """Deterministic clock shared by cache and store."""
    return ManualTimer(start=1_000)


@pytest.fixture
def store(timer: ManualTimer) -> AsyncMemoryStore:
    return AsyncMemoryStore(timer=timer)


@pytest.fixture
def cache(store: AsyncMemoryStore, timer: ManualTimer) -> Cache:
    return Cache(store=store, timer=timer)


@pytest.fixture
def reporter() -> RecordingErrorReporter:
    return RecordingErrorReporter()


@pytest.fixture
def backend() -> MemoryQueueBackend:
    return MemoryQueueBackend()


@pytest.fixture
def source() -> FakeSource:
    return FakeSource()


@pytest.fixture
def environment(cache: Cache, reporter: RecordingErrorReporter) -> Environment:
    return Environment(cache=cache, reporter=reporter)


@pytest.fixture
def get_uuid(environment: Environment, source: FakeSource):
    return create_query(make_uuid_spec(source), environment)


@pytest.fixture
def registry(get_uuid) -> QueryRegistry:
    return QueryRegistry([get_uuid])


@pytest.fixture
def swr_queue(
    environment: Environment,
    cache: Cache,
    timer: ManualTimer,
    registry: QueryRegistry,
    backend: MemoryQueueBackend,
) -> SwrQueue:
    """SWR queue attached to the environment, retrying without delay."""
    queue = SwrQueue(
        cache=cache,
        timer=timer,
        registry=registry,
        backend=backend,
        job_options=JobOptions(backoff=BackoffPolicy("immediate")),
    )
    environment.swr_queue = queue
    return queue


@pytest.fixture
def uuid_spec(source: FakeSource):
    """Factory for the example uuid spec with optional overrides."""

    def factory(**overrides: Any) -> QuerySpec[dict[str, int], Uuid]:
        return make_uuid_spec(source, **overrides)

    return factory

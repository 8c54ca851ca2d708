"""Tests for the Cache."""

import asyncio

import pytest

from swrcache import UNCHANGED, AsyncMemoryStore, Cache, ManualTimer, Priority


class TestGetSet:
    async def test_get_missing_returns_none(self, cache: Cache) -> None:
        assert await cache.get("nope") is None

    async def test_set_value(self, cache: Cache, timer: ManualTimer) -> None:
        await cache.set("k", value={"a": 1}, source="manual")
        entry = await cache.get("k")
        assert entry is not None
        assert entry.value == {"a": 1}
        assert entry.last_modified == timer.now()
        assert entry.source == "manual"

    async def test_get_has_no_side_effects(self, cache: Cache, store: AsyncMemoryStore) -> None:
        await cache.set("k", value=1, source="manual")
        before = await store.get("k")
        await cache.get("k")
        await cache.get("k")
        assert await store.get("k") == before

    async def test_needs_exactly_one_of_value_and_get_value(self, cache: Cache) -> None:
        with pytest.raises(TypeError):
            await cache.set("k", source="manual")
        with pytest.raises(TypeError):
            await cache.set("k", value=1, get_value=lambda c: 2, source="manual")

    async def test_none_is_a_value(self, cache: Cache) -> None:
        await cache.set("k", value=None, source="manual")
        entry = await cache.get("k")
        assert entry is not None
        assert entry.value is None

    async def test_last_modified_follows_timer(self, cache: Cache, timer: ManualTimer) -> None:
        await cache.set("k", value=1, source="manual")
        first = await cache.get("k")
        timer.advance("5s")
        await cache.set("k", value=2, source="manual")
        second = await cache.get("k")
        assert first is not None and second is not None
        assert second.last_modified == first.last_modified + 5000

    async def test_unreadable_payload_is_a_miss(self, cache: Cache, store: AsyncMemoryStore) -> None:
        await store.set("k", b"garbage")
        assert await cache.get("k") is None


class TestTransforms:
    async def test_get_value_receives_current(self, cache: Cache) -> None:
        seen = []

        def transform(current):
            seen.append(current)
            return (current or 0) + 1

        await cache.set("k", get_value=transform, source="manual")
        await cache.set("k", get_value=transform, source="manual")
        assert seen == [None, 1]
        entry = await cache.get("k")
        assert entry is not None and entry.value == 2

    async def test_async_get_value(self, cache: Cache) -> None:
        async def transform(current):
            await asyncio.sleep(0)
            return "fetched"

        await cache.set("k", get_value=transform, source="worker")
        entry = await cache.get("k")
        assert entry is not None and entry.value == "fetched"

    async def test_unchanged_leaves_entry_byte_identical(
        self, cache: Cache, store: AsyncMemoryStore, timer: ManualTimer
    ) -> None:
        await cache.set("k", value={"trashed": False}, source="query")
        before = await store.get("k")
        timer.advance("10s")

        result = await cache.set("k", get_value=lambda current: UNCHANGED, source="mutation")

        assert result is None
        assert await store.get("k") == before

    async def test_unchanged_on_missing_key_writes_nothing(self, cache: Cache) -> None:
        await cache.set("k", get_value=lambda current: UNCHANGED, source="mutation")
        assert await cache.get("k") is None
        assert await cache.keys() == []

    async def test_failing_transform_writes_nothing(self, cache: Cache) -> None:
        await cache.set("k", value="good", source="query")

        def boom(current):
            raise RuntimeError("bad fetch")

        with pytest.raises(RuntimeError, match="bad fetch"):
            await cache.set("k", get_value=boom, source="worker")

        entry = await cache.get("k")
        assert entry is not None and entry.value == "good"

    async def test_concurrent_transforms_do_not_interleave(self, cache: Cache) -> None:
        async def increment(current):
            await asyncio.sleep(0)  # give other writers a chance to interleave
            return (current or 0) + 1

        await asyncio.gather(
            *(cache.set("counter", get_value=increment, source="t") for _ in range(20))
        )
        entry = await cache.get("counter")
        assert entry is not None and entry.value == 20


class TestTTL:
    async def test_entry_expires_after_ttl(self, cache: Cache, timer: ManualTimer) -> None:
        await cache.set("k", value=1, ttl="1s", source="query")
        timer.advance(999)
        assert await cache.get("k") is not None
        timer.advance(1)
        assert await cache.get("k") is None

    async def test_no_ttl_never_expires(self, cache: Cache, timer: ManualTimer) -> None:
        await cache.set("k", value=1, source="query")
        timer.advance("365d")
        assert await cache.get("k") is not None


class TestPriority:
    async def test_low_priority_waits_for_high_priority_writes(self, cache: Cache) -> None:
        release = asyncio.Event()

        async def slow(current):
            await release.wait()
            return "interactive"

        high = asyncio.create_task(cache.set("a", get_value=slow, source="query"))
        await asyncio.sleep(0)
        low = asyncio.create_task(
            cache.set("b", value="background", source="worker", priority=Priority.LOW)
        )
        await asyncio.sleep(0.01)
        assert not low.done()
        assert await cache.get("b") is None

        release.set()
        await asyncio.gather(high, low)
        entry = await cache.get("b")
        assert entry is not None and entry.value == "background"

    async def test_low_priority_runs_when_uncontended(self, cache: Cache) -> None:
        await cache.set("b", value=1, source="worker", priority=Priority.LOW)
        assert (await cache.get("b")) is not None


class TestLifecycle:
    async def test_remove(self, cache: Cache) -> None:
        await cache.set("k", value=1, source="manual")
        await cache.remove("k")
        assert await cache.get("k") is None

    async def test_flush_and_keys(self, cache: Cache) -> None:
        await cache.set("a", value=1, source="manual")
        await cache.set("b", value=2, source="manual")
        assert sorted(await cache.keys()) == ["a", "b"]

        await cache.flush()
        assert await cache.keys() == []

    async def test_ready_and_quit(self, cache: Cache) -> None:
        await cache.ready()
        await cache.quit()

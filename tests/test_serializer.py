"""Tests for the cache entry serializer."""

import json

import pytest

from swrcache import CacheEntry
from swrcache.exceptions import SerializationError
from swrcache.serializer import JsonSerializer


@pytest.fixture
def serializer() -> JsonSerializer:
    return JsonSerializer()


class TestJsonSerializer:
    def test_envelope_layout(self, serializer: JsonSerializer) -> None:
        entry: CacheEntry[object] = CacheEntry(
            value={"id": 1}, last_modified=42, source="query"
        )
        data = serializer.dumps(entry)
        assert json.loads(data) == {
            "value": {"id": 1},
            "lastModified": 42,
            "source": "query",
        }

    def test_loads_accepts_str_and_bytes(self, serializer: JsonSerializer) -> None:
        payload = '{"value": [1, 2], "lastModified": 7, "source": "worker"}'
        for data in (payload, payload.encode()):
            entry = serializer.loads(data)
            assert entry == CacheEntry(value=[1, 2], last_modified=7, source="worker")

    def test_null_value_is_an_entry(self, serializer: JsonSerializer) -> None:
        entry = serializer.loads(b'{"value": null, "lastModified": 1, "source": "q"}')
        assert entry.value is None

    @pytest.mark.parametrize(
        "data",
        [b"not json", b"[1, 2]", b'{"lastModified": 1}', b'{"value": 1, "lastModified": "x"}'],
    )
    def test_rejects_non_envelopes(self, serializer: JsonSerializer, data: bytes) -> None:
        with pytest.raises(SerializationError):
            serializer.loads(data)

    def test_unserializable_value(self, serializer: JsonSerializer) -> None:
        entry: CacheEntry[object] = CacheEntry(
            value=object(), last_modified=1, source="query"
        )
        with pytest.raises(SerializationError):
            serializer.dumps(entry)

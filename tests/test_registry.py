"""Tests for QueryRegistry."""

import pytest

from swrcache import QueryRegistry


class TestQueryRegistry:
    def test_resolves_known_key(self, registry: QueryRegistry, get_uuid) -> None:
        resolved = registry.resolve("de.example.org/api/uuid/42")
        assert resolved is not None
        assert resolved.spec is get_uuid.spec
        assert resolved.payload == {"id": 42}

    def test_unknown_namespace(self, registry: QueryRegistry) -> None:
        assert registry.resolve("de.example.org/api/alias/foo") is None

    def test_payload_rejected_by_spec(self, registry: QueryRegistry) -> None:
        assert registry.resolve("de.example.org/api/uuid/not-a-number") is None

    def test_longest_prefix_wins(self, uuid_spec) -> None:
        outer = uuid_spec(
            namespace="de.example.org/api/",
            get_payload=lambda key: {"key": key},
        )
        inner = uuid_spec()
        registry = QueryRegistry([outer, inner])

        resolved = registry.resolve("de.example.org/api/uuid/7")
        assert resolved is not None
        assert resolved.spec is inner

        resolved = registry.resolve("de.example.org/api/user/7")
        assert resolved is not None
        assert resolved.spec is outer

    def test_falls_back_to_shorter_prefix(self, uuid_spec) -> None:
        outer = uuid_spec(
            namespace="de.example.org/api/",
            get_payload=lambda key: {"key": key},
        )
        registry = QueryRegistry([outer, uuid_spec()])

        resolved = registry.resolve("de.example.org/api/uuid/x")
        assert resolved is not None
        assert resolved.spec is outer

    def test_duplicate_namespace_rejected(self, uuid_spec) -> None:
        with pytest.raises(ValueError, match="Duplicate"):
            QueryRegistry([uuid_spec(), uuid_spec()])

    def test_accepts_queries_and_specs(self, get_uuid, uuid_spec) -> None:
        other = uuid_spec(namespace="de.example.org/api/user/")
        registry = QueryRegistry([get_uuid, other])
        assert len(registry) == 2
        assert registry.specs == [get_uuid.spec, other]

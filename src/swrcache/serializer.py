"""Encoding of cache entries for storage backends."""

from __future__ import annotations

import json
from typing import Protocol

from swrcache.exceptions import SerializationError
from swrcache.types import CacheEntry


class Serializer(Protocol):
    """Turns cache entries into bytes and back."""

    def dumps(self, entry: CacheEntry[object]) -> bytes:
        """Encode an entry."""
        ...

    def loads(self, data: bytes | str) -> CacheEntry[object]:
        """Decode an entry."""
        ...


class JsonSerializer:
    """Compact JSON envelope ``{"value", "lastModified", "source"}``."""

    def dumps(self, entry: CacheEntry[object]) -> bytes:
        try:
            return json.dumps(
                {
                    "value": entry.value,
                    "lastModified": entry.last_modified,
                    "source": entry.source,
                },
                separators=(",", ":"),
            ).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise SerializationError(f"Cannot serialize cache entry: {e}") from e

    def loads(self, data: bytes | str) -> CacheEntry[object]:
        if isinstance(data, bytes):
            data = data.decode("utf-8")
        try:
            obj = json.loads(data)
        except json.JSONDecodeError as e:
            raise SerializationError(f"Invalid cache payload: {e}") from e

        if (
            not isinstance(obj, dict)
            or "value" not in obj
            or not isinstance(obj.get("lastModified"), int)
        ):
            raise SerializationError("Cache payload is not a cache entry envelope")

        return CacheEntry(
            value=obj["value"],
            last_modified=obj["lastModified"],
            source=str(obj.get("source", "")),
        )

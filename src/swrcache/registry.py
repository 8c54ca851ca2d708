"""Resolution of arbitrary cache keys to the query that owns them."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from swrcache.query import Query, QuerySpec


@dataclass(frozen=True, slots=True)
class Resolved:
    spec: QuerySpec[Any, Any]
    payload: Any


class QueryRegistry:
    """Explicit map from namespace prefix to query spec.

    Built once at process start and handed to the SWR queue and worker.
    """

    def __init__(self, queries: Iterable[Query[Any, Any] | QuerySpec[Any, Any]]) -> None:
        self._specs: dict[str, QuerySpec[Any, Any]] = {}
        for query in queries:
            spec = query.spec if isinstance(query, Query) else query
            if spec.namespace in self._specs:
                raise ValueError(f"Duplicate query namespace: {spec.namespace!r}")
            self._specs[spec.namespace] = spec
        # Longest prefix first so "a/b/" wins over "a/"
        self._namespaces = sorted(self._specs, key=len, reverse=True)

    def __len__(self) -> int:
        return len(self._specs)

    @property
    def specs(self) -> list[QuerySpec[Any, Any]]:
        return list(self._specs.values())

    def resolve(self, key: str) -> Resolved | None:
        """Spec and payload for ``key``, or ``None`` if no spec recognizes it."""
        for namespace in self._namespaces:
            if not key.startswith(namespace):
                continue
            spec = self._specs[namespace]
            payload = spec.get_payload(key)
            if payload is not None:
                return Resolved(spec=spec, payload=payload)
        return None

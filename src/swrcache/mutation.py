"""Declarative writes that patch the cache after the remote write succeeds."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Generic, TypeVar

from swrcache.decoder import Decoder, Invalid
from swrcache.exceptions import InvalidValueError
from swrcache.log import get_logger
from swrcache.query import Query

P = TypeVar("P")
R = TypeVar("R")

logger = get_logger(__name__)


@dataclass(frozen=True)
class CachePatch(Generic[P]):
    """Cache update applied after a successful mutation.

    ``payloads`` selects the affected entries of ``query`` from the mutation
    payload. ``transform(payload, current)`` returns the new value or
    ``UNCHANGED``; it must not depend on anything but its arguments.
    """

    query: Query[Any, Any]
    payloads: Callable[[P], Iterable[Any]]
    transform: Callable[[P, Any], Any]


@dataclass(frozen=True)
class MutationSpec(Generic[P, R]):
    """Declares one write against the system-of-record."""

    mutate: Callable[[P], Awaitable[R]]
    decoder: Decoder[R] | None = None
    patches: Sequence[CachePatch[P]] = field(default_factory=tuple)


class Mutation(Generic[P, R]):
    """Callable created by :func:`create_mutation`.

    Failures of ``mutate`` propagate unchanged and are never retried here.
    Cache patches are applied per key; fields that cannot be derived
    locally stay stale until the next refresh.
    """

    def __init__(self, spec: MutationSpec[P, R]) -> None:
        self._spec = spec

    @property
    def spec(self) -> MutationSpec[P, R]:
        return self._spec

    async def __call__(self, payload: P) -> R:
        result = await self._spec.mutate(payload)

        if self._spec.decoder is not None:
            decoded = self._spec.decoder.decode(result)
            if isinstance(decoded, Invalid):
                raise InvalidValueError(
                    "Invalid value received from mutation",
                    value=result,
                    decoder=self._spec.decoder.name,
                    reason=decoded.reason,
                )
            result = decoded.value

        for patch in self._spec.patches:
            await patch.query.set_cache(
                patch.payloads(payload),
                get_value=partial(patch.transform, payload),
                source="mutation",
            )
        return result


def create_mutation(spec: MutationSpec[P, R]) -> Mutation[P, R]:
    """Create a mutation from its spec."""
    return Mutation(spec)


__all__ = ["CachePatch", "Mutation", "MutationSpec", "create_mutation"]

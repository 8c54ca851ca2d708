"""Runtime validation of values crossing the cache boundary.

A :class:`Decoder` wraps a pydantic ``TypeAdapter`` and never raises on bad
input: :meth:`Decoder.decode` returns either :class:`Valid` or
:class:`Invalid` so callers must handle both outcomes explicitly.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar

from pydantic import TypeAdapter, ValidationError

V = TypeVar("V")


@dataclass(frozen=True, slots=True)
class Valid(Generic[V]):
    value: V

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True, slots=True)
class Invalid:
    reason: str

    @property
    def ok(self) -> bool:
        return False


DecodeResult = Valid[V] | Invalid


class Decoder(Generic[V]):
    """Validates raw (JSON-like) values against a declared type.

    Use ``typing_extensions.TypedDict`` for dict types; pydantic rejects
    ``typing.TypedDict`` before Python 3.12.

    Usage:
        class Uuid(TypedDict):
            id: int
            trashed: bool

        decoder = Decoder(Uuid)
        result = decoder.decode({"id": 1, "trashed": False})
    """

    __slots__ = ("_adapter", "_name", "_type")

    def __init__(self, type_: Any, *, name: str | None = None) -> None:
        self._type = type_
        self._adapter: TypeAdapter[V] = TypeAdapter(type_)
        self._name = name or getattr(type_, "__name__", None) or repr(type_)

    @property
    def name(self) -> str:
        return self._name

    def decode(self, raw: Any) -> DecodeResult[V]:
        try:
            return Valid(self._adapter.validate_python(raw))
        except ValidationError as e:
            return Invalid(str(e))

    def dump(self, value: V) -> Any:
        """JSON-compatible representation of a decoded value for storage."""
        return self._adapter.dump_python(value, mode="json")

    def nullable(self) -> Decoder[V | None]:
        """Decoder that additionally accepts ``None``."""
        return Decoder(Optional[self._type], name=f"{self._name} | None")  # noqa: UP007

    def __repr__(self) -> str:
        return f"Decoder({self._name})"


# Accepts anything JSON-like; used when a spec has no stricter shape.
ANY: Decoder[Any] = Decoder(Any, name="unknown")

"""Duration parsing utilities."""

import re
from datetime import timedelta

from swrcache.types import Duration

_DURATION_PATTERN = re.compile(r"^(?:\d+(?:ms|s|m|h|d))+$")
_PART_PATTERN = re.compile(r"(\d+)(ms|s|m|h|d)")
_UNITS: dict[str, int] = {
    "ms": 1,
    "s": 1000,
    "m": 60_000,
    "h": 3_600_000,
    "d": 86_400_000,
}


def parse_duration(duration: Duration) -> int:
    """Parse a duration to milliseconds.

    Accepts ``"30s"``, compound strings such as ``"1h30m"``, a ``timedelta``
    or an int which is taken to be milliseconds already.
    """
    if isinstance(duration, bool):
        raise ValueError(f"Invalid duration: {duration!r}")
    if isinstance(duration, int):
        if duration < 0:
            raise ValueError(f"Invalid duration: {duration!r}")
        return duration
    if isinstance(duration, timedelta):
        return int(duration.total_seconds() * 1000)

    if not _DURATION_PATTERN.match(duration):
        raise ValueError(f"Invalid duration: {duration!r}")

    return sum(
        int(value) * _UNITS[unit] for value, unit in _PART_PATTERN.findall(duration)
    )


def parse_optional_duration(duration: Duration | None) -> int | None:
    """Like :func:`parse_duration` but passes ``None`` through."""
    return None if duration is None else parse_duration(duration)

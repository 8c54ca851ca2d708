"""Error reporting sink for failures that never reach a caller."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from swrcache.log import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class ErrorEvent:
    """One error report."""

    error: BaseException
    location: str
    context: dict[str, Any] = field(default_factory=dict)
    fingerprint: list[str] | None = None


@runtime_checkable
class ErrorReporter(Protocol):
    """Receives error events (e.g. forwards them to an error tracker)."""

    def capture(self, event: ErrorEvent) -> None:
        """Record an error event. Must not raise."""
        ...


class LoggingErrorReporter:
    """Reports errors through the structured logger."""

    def capture(self, event: ErrorEvent) -> None:
        logger.error(
            "error_reported",
            location=event.location,
            error=repr(event.error),
            fingerprint=event.fingerprint,
            **event.context,
        )


class RecordingErrorReporter:
    """Keeps every event in memory. Handy in tests and local debugging."""

    def __init__(self) -> None:
        self.events: list[ErrorEvent] = []

    def capture(self, event: ErrorEvent) -> None:
        self.events.append(event)

    def clear(self) -> None:
        self.events.clear()


def capture_error_event(
    reporter: ErrorReporter,
    error: BaseException,
    *,
    location: str,
    context: dict[str, Any] | None = None,
    fingerprint: list[str] | None = None,
) -> None:
    """Build an :class:`ErrorEvent` and hand it to the reporter."""
    event = ErrorEvent(
        error=error,
        location=location,
        context=context or {},
        fingerprint=fingerprint,
    )
    try:
        reporter.capture(event)
    except Exception:
        logger.exception("error_reporter_failed", location=location)

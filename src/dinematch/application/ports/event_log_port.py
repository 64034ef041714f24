from __future__ import annotations

from typing import Iterable, Protocol, Union, runtime_checkable

from dinematch.application.collaboration.message_schema import HandlerEvent


@runtime_checkable
class EventLogPort(Protocol):
    """
    Structured record of handler runs.

    Implementations may log, keep events in memory, or persist to the DB.
    """

    def append(self, event: Union[HandlerEvent, dict]) -> None:
        """Append one event."""

    def stream(self, run_id: str) -> Iterable[dict]:
        """Events of one run in order; may be empty for write-only backends."""

    def close(self) -> None:
        """Close underlying resources (optional)."""

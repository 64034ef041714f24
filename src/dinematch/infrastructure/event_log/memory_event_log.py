from __future__ import annotations

from typing import Iterable, List, Union

from dinematch.application.collaboration.message_schema import HandlerEvent


class InMemoryEventLog:
    """Simple in-memory event log (useful for tests/evals)."""

    def __init__(self) -> None:
        self.events: List[dict] = []

    def append(self, event: Union[HandlerEvent, dict]) -> None:
        if isinstance(event, HandlerEvent):
            self.events.append(event.to_dict())
        else:
            self.events.append(dict(event))

    def stream(self, run_id: str) -> Iterable[dict]:
        return (e for e in self.events if e.get("run_id") == run_id)

    def of_handler(self, handler: str, type: str = "job_result") -> List[dict]:
        return [e for e in self.events if e.get("handler") == handler and e.get("type") == type]

    def close(self) -> None:
        return None

from __future__ import annotations

import logging
from typing import Iterable, List, Union

from dinematch.application.collaboration.message_schema import HandlerEvent
from dinematch.application.ports.event_log_port import EventLogPort

logger = logging.getLogger(__name__)


class CompositeEventLog:
    """Tee events to several backends; a failing backend never blocks the others."""

    def __init__(self, backends: List[EventLogPort]):
        self._backends = [b for b in backends if b is not None]

    def append(self, event: Union[HandlerEvent, dict]) -> None:
        for backend in self._backends:
            try:
                backend.append(event)
            except Exception as e:
                logger.debug(f"CompositeEventLog backend append failed: {e}")

    def stream(self, run_id: str) -> Iterable[dict]:
        # First backend that has anything for this run wins.
        for backend in self._backends:
            try:
                events = list(backend.stream(run_id))
            except Exception as e:
                logger.debug(f"CompositeEventLog backend stream failed: {e}")
                continue
            if events:
                return iter(events)
        return iter(())

    def close(self) -> None:
        for backend in self._backends:
            try:
                backend.close()
            except Exception as e:
                logger.debug(f"CompositeEventLog backend close failed: {e}")

from __future__ import annotations

import json
import logging
from typing import Iterable, Optional, Union

from dinematch.application.collaboration.message_schema import HandlerEvent


class LoggingEventLog:
    """
    Emit handler events as JSON lines to the Python logger.

    Write-only: `stream` has nothing to replay.
    """

    def __init__(self, logger: Optional[logging.Logger] = None, level: int = logging.INFO):
        self._logger = logger or logging.getLogger("dinematch.eventlog")
        self._level = level

    def append(self, event: Union[HandlerEvent, dict]) -> None:
        if isinstance(event, HandlerEvent):
            line = event.to_json()
        else:
            line = json.dumps(event, ensure_ascii=False, default=str)
        self._logger.log(self._level, line)

    def stream(self, run_id: str) -> Iterable[dict]:
        return iter(())

    def close(self) -> None:
        return None

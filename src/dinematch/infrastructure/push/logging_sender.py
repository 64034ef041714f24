from __future__ import annotations

import json
import logging
from typing import Dict, Optional


class LoggingPushSender:
    """
    Dry-run sender: write each message to the Python logger instead of a device.

    Default provider, so a worker without push credentials still runs end to end.
    """

    def __init__(self, logger: Optional[logging.Logger] = None, level: int = logging.INFO):
        self._logger = logger or logging.getLogger("dinematch.push")
        self._level = level

    async def send(self, device_token: str, title: str, body: str, data: Dict[str, str]) -> None:
        token_hint = f"...{device_token[-6:]}" if len(device_token) > 6 else device_token
        self._logger.log(
            self._level,
            json.dumps({"token": token_hint, "title": title, "body": body, "data": data}, ensure_ascii=False),
        )

    async def close(self) -> None:
        return None

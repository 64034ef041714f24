from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Dict, List, Optional, Set

from dinematch.core.errors import DispatchError


@dataclass
class SentMessage:
    device_token: str
    title: str
    body: str
    data: Dict[str, str]


class InMemoryPushSender:
    """
    Records messages instead of sending them (useful for tests/evals).

    `fail_tokens` raise DispatchError; `hang_tokens` never return, to
    exercise dispatcher timeouts.
    """

    def __init__(self, *, fail_tokens: Optional[Set[str]] = None, hang_tokens: Optional[Set[str]] = None):
        self.sent: List[SentMessage] = []
        self.fail_tokens = set(fail_tokens or ())
        self.hang_tokens = set(hang_tokens or ())

    async def send(self, device_token: str, title: str, body: str, data: Dict[str, str]) -> None:
        if device_token in self.hang_tokens:
            await asyncio.Event().wait()
        if device_token in self.fail_tokens:
            raise DispatchError(message=f"simulated failure for {device_token}")
        self.sent.append(SentMessage(device_token, title, body, dict(data)))

    def of_type(self, kind: str) -> List[SentMessage]:
        return [m for m in self.sent if m.data.get("type") == kind]

    async def close(self) -> None:
        return None

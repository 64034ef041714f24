from __future__ import annotations

from typing import Dict, Protocol, runtime_checkable


@runtime_checkable
class PushSender(Protocol):
    """
    Best-effort push channel.

    `send` returns on acceptance and raises on any failure; there is no
    delivery confirmation beyond that.
    """

    async def send(self, device_token: str, title: str, body: str, data: Dict[str, str]) -> None:
        """Send one message to one device."""

    async def close(self) -> None:
        """Release network resources (optional)."""

"""
Firebase Cloud Messaging sender (HTTP v1 API).
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Optional

import aiohttp
from aiohttp import ClientTimeout

from dinematch.core.errors import DispatchError, ErrorSeverity

logger = logging.getLogger(__name__)


class FcmPushSender:
    """
    Async FCM client: one POST per message to
    {base_url}/projects/{project_id}/messages:send.

    The access token is an OAuth2 bearer token obtained outside this process
    (workload identity, gcloud, ...).
    """

    def __init__(
        self,
        project_id: str,
        access_token: str,
        *,
        base_url: str = "https://fcm.googleapis.com/v1",
        timeout: float = 10.0,
    ):
        if not project_id or not access_token:
            raise DispatchError(
                message="FCM sender needs a project id and an access token",
                severity=ErrorSeverity.CRITICAL,
            )
        self.project_id = project_id
        self.access_token = access_token
        self.base_url = base_url.rstrip("/")
        self.timeout = ClientTimeout(total=timeout)
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/projects/{self.project_id}/messages:send"

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=self.timeout,
                headers={
                    "Authorization": f"Bearer {self.access_token}",
                    "Content-Type": "application/json; charset=UTF-8",
                    "User-Agent": "DineMatch/0.1",
                },
            )
        return self._session

    @staticmethod
    def build_payload(device_token: str, title: str, body: str, data: Dict[str, str]) -> Dict[str, object]:
        return {
            "message": {
                "token": device_token,
                "notification": {"title": title, "body": body},
                # FCM data values must be strings
                "data": {k: str(v) for k, v in data.items()},
            }
        }

    async def send(self, device_token: str, title: str, body: str, data: Dict[str, str]) -> None:
        session = await self._get_session()
        payload = self.build_payload(device_token, title, body, data)
        try:
            async with session.post(self.endpoint, json=payload) as response:
                if response.status == 200:
                    return
                text = await response.text()
                logger.error(f"FCM error {response.status}: {text[:200]}")
                raise DispatchError(
                    message=f"FCM rejected message: {response.status}",
                    context={"status": response.status, "type": data.get("type")},
                )
        except asyncio.TimeoutError:
            logger.error(f"FCM request timeout: {self.endpoint}")
            raise
        except aiohttp.ClientError as e:
            raise DispatchError(message=f"FCM request failed: {e}") from e

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

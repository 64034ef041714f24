from __future__ import annotations

import asyncio
import logging

import pytest
from aiohttp import web
from aiohttp import test_utils

from dinematch.config import PushConfig
from dinematch.core.errors import DispatchError, ErrorSeverity
from dinematch.infrastructure.push import (
    FcmPushSender,
    InMemoryPushSender,
    LoggingPushSender,
    create_push_sender,
)


def test_create_push_sender_defaults_to_logging():
    assert isinstance(create_push_sender(PushConfig()), LoggingPushSender)


def test_create_push_sender_fcm():
    sender = create_push_sender(PushConfig(provider="fcm", fcm_project_id="proj", fcm_access_token="tkn"))
    assert isinstance(sender, FcmPushSender)
    assert sender.endpoint == "https://fcm.googleapis.com/v1/projects/proj/messages:send"


def test_fcm_sender_requires_credentials():
    with pytest.raises(DispatchError) as exc:
        FcmPushSender("", "")
    assert exc.value.severity is ErrorSeverity.CRITICAL


def test_fcm_payload_stringifies_data():
    payload = FcmPushSender.build_payload("dev", "t", "b", {"type": "arrival_code", "arrivalCode": 42})
    assert payload == {
        "message": {
            "token": "dev",
            "notification": {"title": "t", "body": "b"},
            "data": {"type": "arrival_code", "arrivalCode": "42"},
        }
    }


async def _fcm_server(status: int):
    received = []

    async def _send(request: web.Request) -> web.Response:
        received.append({"auth": request.headers.get("Authorization"), "body": await request.json()})
        return web.json_response({"name": "projects/proj/messages/1"}, status=status)

    app = web.Application()
    app.router.add_post("/v1/projects/proj/messages:send", _send)
    server = test_utils.TestServer(app)
    await server.start_server()
    return server, received


@pytest.mark.asyncio
async def test_fcm_send_posts_message():
    server, received = await _fcm_server(200)
    try:
        async with FcmPushSender("proj", "secret", base_url=str(server.make_url("/v1"))) as sender:
            await sender.send("dev-1", "Hello", "World", {"type": "arrival_reminder"})
    finally:
        await server.close()

    assert received == [
        {
            "auth": "Bearer secret",
            "body": {
                "message": {
                    "token": "dev-1",
                    "notification": {"title": "Hello", "body": "World"},
                    "data": {"type": "arrival_reminder"},
                }
            },
        }
    ]


@pytest.mark.asyncio
async def test_fcm_send_raises_on_rejection():
    server, _ = await _fcm_server(500)
    try:
        async with FcmPushSender("proj", "secret", base_url=str(server.make_url("/v1"))) as sender:
            with pytest.raises(DispatchError):
                await sender.send("dev-1", "Hello", "World", {"type": "arrival_reminder"})
    finally:
        await server.close()


@pytest.mark.asyncio
async def test_logging_sender_masks_token(caplog):
    caplog.set_level(logging.INFO, logger="dinematch.push")
    await LoggingPushSender().send("abcdefghijkl", "Title", "Body", {"type": "x"})
    assert "...ghijkl" in caplog.text
    assert "abcdefghijkl" not in caplog.text


@pytest.mark.asyncio
async def test_memory_sender_hang_and_fail():
    sender = InMemoryPushSender(fail_tokens={"bad"}, hang_tokens={"slow"})
    with pytest.raises(DispatchError):
        await sender.send("bad", "t", "b", {})
    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(sender.send("slow", "t", "b", {}), timeout=0.01)
    await sender.send("ok", "t", "b", {"type": "k"})
    assert [m.device_token for m in sender.of_type("k")] == ["ok"]

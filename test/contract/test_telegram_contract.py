"""Contract tests for the Telegram notification sink."""

from __future__ import annotations

import json

import pytest
import respx

from services.telegram import TelegramClient

API = "http://telegram.test"


@pytest.mark.asyncio
async def test_send_contract() -> None:
    """Send posts a MarkdownV2 message with link previews disabled."""
    with respx.mock(assert_all_called=True) as router:
        route = router.post(f"{API}/bot123:abc/sendMessage").respond(
            200, json={"ok": True, "result": {"message_id": 7}}
        )

        client = TelegramClient(bot_token="123:abc", api_url=API)
        ok = await client.send(-100123, "Task overdue\\!")

    assert ok is True
    assert json.loads(route.calls[0].request.content.decode("utf-8")) == {
        "chat_id": -100123,
        "text": "Task overdue\\!",
        "parse_mode": "MarkdownV2",
        "link_preview_options": {"is_disabled": True},
    }


@pytest.mark.asyncio
async def test_send_contract_handles_http_error() -> None:
    """Send returns False when Telegram rejects the request."""
    with respx.mock(assert_all_called=True) as router:
        route = router.post(f"{API}/bot123:abc/sendMessage").respond(
            400, json={"ok": False, "description": "Bad Request: can't parse entities"}
        )

        client = TelegramClient(bot_token="123:abc", api_url=API)
        ok = await client.send(-100123, "broken *markdown")

    assert ok is False
    assert route.called


@pytest.mark.asyncio
async def test_send_contract_handles_not_ok_payload() -> None:
    with respx.mock(assert_all_called=True) as router:
        router.post(f"{API}/bot123:abc/sendMessage").respond(
            200, json={"ok": False, "description": "chat not found"}
        )

        client = TelegramClient(bot_token="123:abc", api_url=API)
        ok = await client.send(-100123, "hello")

    assert ok is False

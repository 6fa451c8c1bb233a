"""Telegram Bot API notification sink."""

from __future__ import annotations

import logging

from config import settings
from services.http_client import AsyncHttpClient, ErrorConfig, ErrorStrategy

logger = logging.getLogger(__name__)


class TelegramClient:
    """Sends MarkdownV2 messages to Telegram chats via ``sendMessage``."""

    def __init__(
        self,
        bot_token: str | None = None,
        api_url: str | None = None,
        http: AsyncHttpClient | None = None,
    ):
        self.bot_token = bot_token if bot_token is not None else settings.telegram.bot_token
        self.api_url = (api_url or settings.telegram.api_url).rstrip("/")
        self._http = http or AsyncHttpClient(
            error_config=ErrorConfig(
                strategy=ErrorStrategy.LOG_AND_RETURN_NONE,
                include_response_body=True,
            )
        )

    async def send(self, destination: int, message: str) -> bool:
        """Send a message to a chat.

        Args:
            destination: Telegram chat id
            message: MarkdownV2-formatted text

        Returns:
            True if Telegram accepted the message, False otherwise
        """
        response = await self._http.post(
            f"{self.api_url}/bot{self.bot_token}/sendMessage",
            json={
                "chat_id": destination,
                "text": message,
                "parse_mode": "MarkdownV2",
                "link_preview_options": {"is_disabled": True},
            },
        )
        if response is None:
            return False
        try:
            payload = response.json()
        except ValueError:
            logger.error("Telegram returned a non-JSON response for chat %s", destination)
            return False
        if not payload.get("ok", False):
            logger.error(
                "Telegram rejected message for chat %s: %s",
                destination,
                payload.get("description", "unknown error"),
            )
            return False
        return True

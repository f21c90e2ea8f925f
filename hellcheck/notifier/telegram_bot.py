"""Hellcheck — Telegram Notifier.

Sends state changes to a Telegram chat through the Bot API's
sendMessage method, using python-telegram-bot's async Bot client.
"""

from __future__ import annotations

from typing import Any, Optional

from telegram import Bot
from telegram.error import TelegramError

from hellcheck.config import TelegramNotifierConfig
from hellcheck.models import Notification
from hellcheck.notifier.base import DEFAULT_TIMEOUT_SECONDS, DeliveryError, Notifier
from hellcheck.notifier.formatters import format_telegram_text
from hellcheck.utils.logger import get_logger

logger = get_logger(__name__)


class TelegramNotifier(Notifier):
    """Async Telegram bot backend.

    One attempt per notification: rate limits, timeouts and API errors
    all surface as DeliveryError and are not retried.

    Attributes:
        chat_id: Target chat identifier.
        timeout: Per-request timeout in seconds.
    """

    def __init__(
        self,
        token: str,
        chat_id: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        bot: Optional[Any] = None,
    ) -> None:
        """Initialize the notifier.

        Args:
            token: Bot API token.
            chat_id: Chat to post into.
            timeout: Connect/read/write timeout for the API call.
            bot: Pre-built Bot-compatible client (tests inject a fake).
        """
        self.chat_id = chat_id
        self.timeout = timeout
        self._bot = bot if bot is not None else Bot(token=token)
        self._initialized = False

    @classmethod
    def from_config(cls, config: TelegramNotifierConfig) -> "TelegramNotifier":
        return cls(token=config.token, chat_id=config.chat_id)

    async def notify(self, notification: Notification) -> None:
        text = format_telegram_text(notification)
        try:
            if not self._initialized:
                # opens the HTTP connection pools; shutdown() is a no-op without it
                await self._bot.initialize()
                self._initialized = True
            await self._bot.send_message(
                chat_id=self.chat_id,
                text=text,
                connect_timeout=self.timeout,
                read_timeout=self.timeout,
                write_timeout=self.timeout,
                pool_timeout=self.timeout,
            )
        except TelegramError as e:
            raise DeliveryError(f"Telegram API error: {e}") from e
        logger.debug("Telegram message sent to chat %s", self.chat_id)

    async def close(self) -> None:
        if self._initialized:
            await self._bot.shutdown()
            self._initialized = False

    def __repr__(self) -> str:
        return f"TelegramNotifier(chat_id={self.chat_id!r})"

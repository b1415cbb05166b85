# -*- coding: utf-8 -*-
"""Telegram notification strategy (async)."""

from __future__ import annotations

import asyncio
import time
from collections import deque
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional

import structlog
from telegram import Bot, InlineKeyboardButton, InlineKeyboardMarkup, LinkPreviewOptions
from telegram.error import BadRequest, Forbidden, InvalidToken, RetryAfter, TelegramError
from telegram.request import HTTPXRequest

from token_scanner.notifications.strategies.base import BaseNotificationStrategy
from token_scanner.notifications.types import NotificationMessage

if TYPE_CHECKING:
    from token_scanner.config.config import Settings
    from token_scanner.notifications.types import NotificationStyler

_RATE_WINDOW_SECONDS = 60.0
_MAX_BACKOFF_SECONDS = 60.0


class TelegramNotifier(BaseNotificationStrategy):
    """Post scanner alerts to one Telegram chat.

    Token and pair alerts carry an inline keyboard: a buy button for
    related_address (when a buy URL template is configured) and an explorer
    button for related_tx_hash. Delivery is retried max_retries times after
    the first attempt; rejected messages (bad HTML, bot kicked) are dropped.
    """

    def __init__(
        self,
        settings: "Settings",
        styler: "NotificationStyler",
        *,
        bot: Optional[Bot] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        get_logger: Callable[[str], Any] = structlog.get_logger,
        logger_name: Optional[str] = None,
    ) -> None:
        super().__init__(settings)
        self._logger = get_logger(logger_name or self.__class__.__name__)
        self._styler: "NotificationStyler" = styler

        cfg = self.settings.telegram
        if not cfg.enabled or not cfg.api_key or not cfg.chat_id:
            raise ValueError("TelegramNotifier requires token and chat_id.")
        self.chat_id: str = str(cfg.chat_id)
        self._token: str = str(cfg.api_key)

        self._bot: Optional[Bot] = bot
        self._sleep = sleep
        self._running = False
        self._sent_at: deque[float] = deque()

    @property
    def is_running(self) -> bool:
        return self._running

    async def initialize(self) -> None:
        if self._running:
            self._logger.warning("telegram_already_running")
            return
        if self._bot is None:
            cfg = self.settings.telegram
            self._bot = Bot(
                token=self._token,
                request=HTTPXRequest(
                    connect_timeout=cfg.connect_timeout,
                    read_timeout=cfg.read_timeout,
                    write_timeout=cfg.write_timeout,
                    pool_timeout=cfg.pool_timeout,
                ),
            )
        self._running = True
        self._logger.debug("telegram_started", telegram_chat_id=self.chat_id)

    async def shutdown(self) -> None:
        self._bot = None
        self._running = False

    def build_keyboard(self, message: NotificationMessage) -> Optional[InlineKeyboardMarkup]:
        """One row of URL buttons for the alert's links, or None when it has none."""
        row = [InlineKeyboardButton(label, url=url) for label, url in self.links(message)]
        return InlineKeyboardMarkup([row]) if row else None

    async def send_notification(self, message: NotificationMessage) -> None:
        if not self._running or self._bot is None:
            self._logger.warning(
                "telegram_not_running_cannot_send",
                notification_event_type=message.event_type,
            )
            return
        await self._deliver(self._styler.render(message), self.build_keyboard(message))

    def _retry_delay(self, exc: TelegramError, attempt: int) -> Optional[float]:
        """Seconds to wait before retrying after exc, or None when retrying cannot help."""
        if isinstance(exc, RetryAfter):
            retry_after: Any = exc.retry_after
            if hasattr(retry_after, "total_seconds"):
                return float(retry_after.total_seconds())
            return float(retry_after)
        # BadRequest subclasses NetworkError, so it is checked before the generic backoff
        if isinstance(exc, (BadRequest, Forbidden, InvalidToken)):
            return None
        base = self.settings.telegram.backoff_base_seconds
        return min(_MAX_BACKOFF_SECONDS, base * (2 ** (attempt - 1)))

    async def _deliver(self, text: str, reply_markup: Optional[InlineKeyboardMarkup]) -> None:
        assert self._bot is not None
        await self._wait_for_rate_window()
        attempts = self.settings.telegram.max_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                await self._bot.send_message(
                    chat_id=self.chat_id,
                    text=text,
                    parse_mode="HTML",
                    link_preview_options=LinkPreviewOptions(is_disabled=True),
                    reply_markup=reply_markup,
                )
            except TelegramError as exc:
                delay = self._retry_delay(exc, attempt)
                if delay is None:
                    self._logger.error(
                        "telegram_message_rejected",
                        error_type=type(exc).__name__,
                        error_message=str(exc),
                    )
                    return
                if attempt == attempts:
                    break
                self._logger.warning(
                    "telegram_send_retry",
                    error_type=type(exc).__name__,
                    error_message=str(exc),
                    retry_attempt=attempt,
                    retry_max_attempts=attempts,
                    retry_delay_seconds=delay,
                )
                await self._sleep(delay)
                continue
            self._sent_at.append(time.monotonic())
            return

        self._logger.error("telegram_max_retries_exceeded_message_dropped", retry_max_attempts=attempts)

    async def _wait_for_rate_window(self) -> None:
        """Keep at most messages_per_minute sends inside any 60s window."""
        limit = self.settings.telegram.messages_per_minute
        now = time.monotonic()
        while self._sent_at and now - self._sent_at[0] >= _RATE_WINDOW_SECONDS:
            self._sent_at.popleft()
        if len(self._sent_at) >= limit:
            wait = _RATE_WINDOW_SECONDS - (now - self._sent_at[0])
            self._logger.debug("telegram_rate_limited_locally", retry_delay_seconds=round(wait, 3))
            await self._sleep(wait)

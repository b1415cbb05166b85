# -*- coding: utf-8 -*-
"""Base notification channel."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from token_scanner.notifications.types import NotificationMessage

if TYPE_CHECKING:  # pragma: no cover
    from token_scanner.config.config import Settings


class BaseNotificationStrategy(ABC):
    """A place scanner alerts are delivered to (stdout, a Telegram chat)."""

    def __init__(self, settings: "Settings"):
        self.settings = settings

    @property
    @abstractmethod
    def is_running(self) -> bool:
        """True between initialize() and shutdown()."""

    @abstractmethod
    async def initialize(self) -> None: ...

    @abstractmethod
    async def shutdown(self) -> None: ...

    @abstractmethod
    async def send_notification(self, message: NotificationMessage) -> None:
        """Deliver one alert. Errors raised here are logged by NotificationService."""

    def links(self, message: NotificationMessage) -> list[tuple[str, str]]:
        """(label, url) pairs for the token and transaction an alert refers to.

        The buy link needs both related_address and a configured
        detection.buy_url_template; the explorer link needs related_tx_hash.
        """
        detection = self.settings.detection
        out: list[tuple[str, str]] = []
        if message.related_address and detection.buy_url_template:
            out.append(("🛒 Buy Token", detection.buy_url_template.format(address=message.related_address)))
        if message.related_tx_hash:
            out.append(("🔍 CronoScan", detection.explorer_tx_url.format(tx_hash=message.related_tx_hash)))
        return out

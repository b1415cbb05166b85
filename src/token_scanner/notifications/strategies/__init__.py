"""Notification strategies."""

from token_scanner.notifications.strategies.base import (
    BaseNotificationStrategy,
)
from token_scanner.notifications.strategies.console import ConsoleNotifier
from token_scanner.notifications.strategies.telegram import TelegramNotifier

__all__ = [
    "BaseNotificationStrategy",
    "ConsoleNotifier",
    "TelegramNotifier",
]

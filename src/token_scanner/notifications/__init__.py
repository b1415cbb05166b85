"""Notification subsystem."""

from token_scanner.notifications.notification_manager import (
    NotificationService,
)
from token_scanner.notifications.strategies import (
    BaseNotificationStrategy,
    ConsoleNotifier,
    TelegramNotifier,
)
from token_scanner.notifications.stylers import EventNotificationStyler
from token_scanner.notifications.types import (
    EventType,
    NotificationMessage,
    NotificationStyler,
)

__all__ = [
    "BaseNotificationStrategy",
    "ConsoleNotifier",
    "EventNotificationStyler",
    "EventType",
    "TelegramNotifier",
    "NotificationMessage",
    "NotificationService",
    "NotificationStyler",
]

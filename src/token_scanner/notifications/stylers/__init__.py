"""Notification stylers."""

from token_scanner.notifications.stylers.notification_styler import EventNotificationStyler

__all__ = [
    "EventNotificationStyler",
]

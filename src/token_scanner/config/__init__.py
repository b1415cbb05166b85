"""Configuration subpackage."""

from token_scanner.config.config import (
    AppSettings,
    ChainSettings,
    ConsoleNotificationSettings,
    DetectionSettings,
    IngestionSettings,
    LoggingSettings,
    RetrySettings,
    Settings,
    StorageSettings,
    TelegramNotificationSettings,
    get_settings,
)

__all__ = [
    "AppSettings",
    "ChainSettings",
    "ConsoleNotificationSettings",
    "DetectionSettings",
    "IngestionSettings",
    "LoggingSettings",
    "RetrySettings",
    "Settings",
    "StorageSettings",
    "TelegramNotificationSettings",
    "get_settings",
]

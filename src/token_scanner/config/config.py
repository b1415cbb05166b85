# -*- coding: utf-8 -*-
"""Configuration loaded from environment via Pydantic Settings.

Nested env vars use <section>__<key>, e.g. LOGGING__CONSOLE_LEVEL, CHAIN__WS_URL.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Any, Literal, Optional

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

_DEFAULT_HTTP_URLS = ",".join(
    [
        "https://evm.cronos.org",
        "https://cronos.blockpi.network/v1/rpc/public",
        "https://cronos-rpc.publicnode.com",
        "https://cronos.drpc.org",
    ]
)

_DEFAULT_FACTORIES = ",".join(
    [
        "0x3b44b2a187a7b3824131f8db5a74194d0a42fc15",
        "0x7c9fa4433e491c39765cc44df0b7f2c5d86e6e6b",
        "0x9deb29c9a4c7a88a3c0257393b7f3335338d9a9d",
    ]
)


def _split_csv(raw: str) -> list[str]:
    if not raw or not raw.strip():
        return []
    return [s.strip() for s in raw.split(",") if s.strip()]


class AppSettings(BaseSettings):
    """General application configuration."""

    model_config = SettingsConfigDict(extra="ignore")

    app_name: str = "token-scanner"
    service_name: Optional[str] = None
    service_version: Optional[str] = None
    environment: Literal["development", "test", "production"] = "development"


LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
RotateWhen = Literal["S", "M", "H", "D", "W0", "W1", "W2", "W3", "W4", "W5", "W6", "midnight"]


class LoggingSettings(BaseSettings):
    """Where scanner logs go and at which level (from env LOGGING__*)."""

    model_config = SettingsConfigDict(extra="ignore")

    log_to_console: bool = True
    console_level: LogLevel = "INFO"
    # console only: True renders JSON lines, False uses structlog's colour renderer
    json_format: bool = False

    # file output is always JSON and rotates with TimedRotatingFileHandler
    log_to_file: bool = False
    file_level: LogLevel = "INFO"
    log_file_path: str = "logs/token_scanner.log"
    log_file_when: RotateWhen = "midnight"
    log_file_interval: int = Field(default=1, ge=1)
    log_file_backup_count: int = Field(default=30, ge=0)
    log_file_utc: bool = True

    # httpx under python-telegram-bot, aiohttp.access
    library_level: LogLevel = "WARNING"

    logfire_enabled: bool = False
    logfire_level: LogLevel = "INFO"
    logfire_token: Optional[str] = Field(default=None, description="Logfire write token.")


class ChainSettings(BaseSettings):
    """RPC endpoints for the watched chain (from env CHAIN__*)."""

    model_config = SettingsConfigDict(extra="ignore")

    ws_url: Optional[str] = Field(
        default=None,
        description="WebSocket RPC URL for push mode. Pull mode only when unset.",
    )
    http_url: Optional[str] = Field(
        default=None,
        description="Primary HTTP RPC URL. Tried first in the endpoint pool.",
    )
    # Raw string from env so pydantic-settings does not try to JSON-decode it.
    fallback_http_urls_raw: str = Field(
        default=_DEFAULT_HTTP_URLS,
        description="Secondary HTTP RPC URLs, comma-separated. Env: CHAIN__FALLBACK_HTTP_URLS.",
        validation_alias="fallback_http_urls",
    )
    chain_id: int = Field(default=25, description="Chain ID (25 for Cronos).")
    request_timeout_seconds: float = Field(
        default=15.0,
        ge=1.0,
        le=120.0,
        description="HTTP request timeout in seconds.",
    )
    push_connect_timeout_seconds: float = Field(
        default=10.0,
        ge=0.5,
        le=120.0,
        description="Bound on WebSocket connect + liveness check before falling back to pull.",
    )

    @computed_field
    @property
    def http_urls(self) -> list[str]:
        """Primary URL first, then fallbacks, without duplicates."""
        urls: list[str] = []
        candidates = ([self.http_url] if self.http_url else []) + _split_csv(
            self.fallback_http_urls_raw
        )
        for url in candidates:
            url = url.strip().rstrip("/")
            if url and url not in urls:
                urls.append(url)
        return urls


class RetrySettings(BaseSettings):
    """Per-call retry policy (from env RETRY__*)."""

    model_config = SettingsConfigDict(extra="ignore")

    max_attempts: int = Field(default=5, ge=1, le=20)
    base_delay_seconds: float = Field(default=1.0, ge=0.0, le=60.0)


class IngestionSettings(BaseSettings):
    """Ingestion loop cadence and error thresholds (from env INGESTION__*)."""

    model_config = SettingsConfigDict(extra="ignore")

    poll_interval_seconds: float = Field(default=1.5, ge=0.1, le=60.0)
    error_poll_interval_seconds: float = Field(default=3.0, ge=0.1, le=120.0)
    max_consecutive_errors: int = Field(
        default=10,
        ge=1,
        le=1000,
        description="Consecutive failed pull steps before rotating to the next endpoint.",
    )
    progress_log_every: int = Field(default=100, ge=1)


class DetectionSettings(BaseSettings):
    """Detection inputs: factories, supply threshold, display formatting (env DETECTION__*)."""

    model_config = SettingsConfigDict(extra="ignore")

    factories_raw: str = Field(
        default=_DEFAULT_FACTORIES,
        description="Pair factory addresses, comma-separated. Env: DETECTION__FACTORIES.",
        validation_alias="factories",
    )
    min_supply: int = Field(
        default=0,
        ge=0,
        description="Minimum raw totalSupply for a deployed token to be reported (0 disables).",
    )
    native_decimals: int = Field(default=18, ge=0, le=36)
    native_symbol: str = "CRO"
    explorer_tx_url: str = "https://cronoscan.com/tx/{tx_hash}"
    buy_url_template: Optional[str] = Field(
        default="https://t.me/CronusAgentBot?start=rongaped_{address}",
        description="Telegram 'Buy' button target; {address} is substituted. None disables.",
    )

    @computed_field
    @property
    def factories(self) -> list[str]:
        """Parse comma-separated factories_raw into lowercased addresses."""
        return [s.lower() for s in _split_csv(self.factories_raw)]


class StorageSettings(BaseSettings):
    """Dedup store backend (from env STORAGE__*)."""

    model_config = SettingsConfigDict(extra="ignore")

    backend: Literal["sqlite", "memory"] = "sqlite"
    sqlite_path: str = "cronos.db"


class TelegramNotificationSettings(BaseSettings):
    """Telegram alert channel (from env TELEGRAM__*). Needs api_key and chat_id when enabled."""

    model_config = SettingsConfigDict(extra="ignore")

    enabled: bool = False
    api_key: Optional[str] = Field(default=None, description="Bot token from @BotFather.")
    chat_id: Optional[str] = Field(default=None, description="Chat or channel receiving alerts.")

    messages_per_minute: int = Field(
        default=20, ge=1, le=60, description="Local send cap; Telegram allows ~20/min per group."
    )
    max_retries: int = Field(
        default=3, ge=0, le=10, description="Retries after the first failed send."
    )
    backoff_base_seconds: float = Field(default=1.0, ge=0.1, le=30.0)
    queue_size: int = Field(
        default=500, ge=1, le=10000, description="Pending alerts kept before new ones are dropped."
    )

    # HTTPXRequest timeouts, seconds
    connect_timeout: float = Field(default=5.0, gt=0)
    read_timeout: float = Field(default=15.0, gt=0)
    write_timeout: float = Field(default=15.0, gt=0)
    pool_timeout: float = Field(default=5.0, gt=0)


class ConsoleNotificationSettings(BaseSettings):
    """Console notification settings."""

    model_config = SettingsConfigDict(extra="ignore")

    enabled: bool = True


class Settings(BaseSettings):
    """Root application configuration.

    Groups all sub-configurations so the rest of the code does not
    read environment variables directly. Nested overrides use
    <section>__<key>, e.g. LOGGING__CONSOLE_LEVEL, CHAIN__HTTP_URL.
    """

    model_config = SettingsConfigDict(
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    app: AppSettings = Field(default_factory=AppSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    chain: ChainSettings = Field(default_factory=ChainSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    ingestion: IngestionSettings = Field(default_factory=IngestionSettings)
    detection: DetectionSettings = Field(default_factory=DetectionSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    telegram: TelegramNotificationSettings = Field(default_factory=TelegramNotificationSettings)
    console: ConsoleNotificationSettings = Field(default_factory=ConsoleNotificationSettings)

    @classmethod
    def from_env(cls, **overrides: Any) -> Settings:
        """Build settings from environment (and .env), with optional overrides.

        Nested overrides can be passed as nested dicts, e.g.
        from_env(retry={"max_attempts": 3}).

        Returns:
            A new Settings instance.
        """
        return cls(**overrides)


@lru_cache
def get_settings() -> Settings:
    """Return a single cached instance of Settings.

    Typical usage:

        from token_scanner.config import get_settings

        settings = get_settings()
        endpoints = settings.chain.http_urls
    """
    return Settings()

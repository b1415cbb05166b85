# -*- coding: utf-8 -*-
"""structlog setup: stdlib handlers, optional Logfire export, scanner context."""

from __future__ import annotations

import logging
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Any

import logfire
import structlog
from structlog.types import EventDict, Processor

from token_scanner.config import Settings, get_settings

_LOGFIRE_LEVELS: dict[str, str] = {
    "DEBUG": "debug",
    "INFO": "info",
    "WARNING": "warn",
    "ERROR": "error",
    "CRITICAL": "fatal",
}

NOISY_LIBRARY_LOGGERS: tuple[str, ...] = ("httpx", "httpcore", "telegram", "aiohttp.access")


def _level(name: str) -> int:
    return logging.getLevelNamesMapping().get(name.upper(), logging.INFO)


def _scanner_context(settings: Settings) -> Processor:
    """Processor stamping every event with its logger name, app identity and chain id."""
    app = settings.app
    static: dict[str, Any] = {
        "app_name": app.app_name,
        "environment": app.environment,
        "chain_id": settings.chain.chain_id,
    }
    if app.service_name:
        static["service_name"] = app.service_name
    if app.service_version:
        static["service_version"] = app.service_version

    def processor(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
        inner = getattr(logger, "_logger", None)
        event_dict["logger"] = getattr(inner, "name", None) or getattr(logger, "name", "") or ""
        for key, value in static.items():
            event_dict.setdefault(key, value)
        return event_dict

    return processor


def _stdlib_handlers(settings: Settings) -> list[logging.Handler]:
    cfg = settings.logging
    handlers: list[logging.Handler] = []
    if cfg.log_to_console:
        console = logging.StreamHandler()
        console.setLevel(_level(cfg.console_level))
        handlers.append(console)
    if cfg.log_to_file:
        path = Path(cfg.log_file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        rotating = TimedRotatingFileHandler(
            path,
            when=cfg.log_file_when,
            interval=cfg.log_file_interval,
            backupCount=cfg.log_file_backup_count,
            encoding="utf-8",
            utc=cfg.log_file_utc,
        )
        rotating.setLevel(_level(cfg.file_level))
        handlers.append(rotating)
    for handler in handlers:
        handler.setFormatter(logging.Formatter("%(message)s"))
    return handlers


def _renderer(settings: Settings) -> Processor | None:
    """JSON whenever a file is written or json_format is set, console colours otherwise."""
    cfg = settings.logging
    if not (cfg.log_to_console or cfg.log_to_file):
        return None
    if cfg.log_to_file or cfg.json_format:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer()


def _build_processors(settings: Settings) -> list[Processor]:
    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _scanner_context(settings),
    ]
    if settings.logging.logfire_enabled:
        processors.append(logfire.StructlogProcessor())  # type: ignore[arg-type]
    renderer = _renderer(settings)
    if renderer is not None:
        processors.append(renderer)
    return processors


def _configure_logfire(settings: Settings) -> None:
    app = settings.app
    logfire.configure(
        token=settings.logging.logfire_token,
        service_name=app.service_name or app.app_name,
        service_version=app.service_version,
        min_level=_LOGFIRE_LEVELS.get(settings.logging.logfire_level, "info"),  # type: ignore[arg-type]
        environment=app.environment,
    )


def configure_logging(settings: Settings | None = None) -> None:
    """Configure stdlib handlers, Logfire (when enabled) and structlog from settings."""
    settings = settings or get_settings()

    handlers = _stdlib_handlers(settings)
    if handlers:
        logging.basicConfig(
            level=min(h.level for h in handlers),
            handlers=handlers,
            force=True,
        )
    library_level = _level(settings.logging.library_level)
    for name in NOISY_LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)

    if settings.logging.logfire_enabled:
        _configure_logfire(settings)

    structlog.configure(
        processors=_build_processors(settings),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

# -*- coding: utf-8 -*-
"""Dependency injection container (dependency-injector)."""

from __future__ import annotations

from collections.abc import Callable

from dependency_injector import containers, providers

from token_scanner.chain import HttpChainSource, IChainSource, WebSocketChainSource
from token_scanner.clients.http import AsyncHttpClient
from token_scanner.clients.rpc_transport import HttpRpcTransport, RpcTransport
from token_scanner.config import Settings, get_settings
from token_scanner.exceptions import MissingRequiredConfigError
from token_scanner.models.endpoint import Endpoint, TransportKind
from token_scanner.notifications.notification_manager import NotificationService
from token_scanner.notifications.strategies.base import BaseNotificationStrategy
from token_scanner.notifications.strategies.console import ConsoleNotifier
from token_scanner.notifications.strategies.telegram import TelegramNotifier
from token_scanner.notifications.stylers.notification_styler import EventNotificationStyler
from token_scanner.persistence.repositories import (
    InMemorySeenEntityRepository,
    ISeenEntityRepository,
    SqliteSeenEntityRepository,
)
from token_scanner.services.detection import TokenProbe
from token_scanner.services.health import HealthMonitor
from token_scanner.services.ingestion import BlockProcessor, EntityProcessor, IngestionLoop
from token_scanner.services.resilience import FailoverManager, RetryPolicy


def _build_pull_endpoints(settings: Settings) -> list[Endpoint]:
    """HTTP endpoints in priority order (primary first)."""
    urls = settings.chain.http_urls
    if not urls:
        raise MissingRequiredConfigError("CHAIN__HTTP_URL or CHAIN__FALLBACK_HTTP_URLS")
    return [Endpoint.create(url, TransportKind.PULL) for url in urls]


def _build_transport_factory(http_client: AsyncHttpClient) -> Callable[[Endpoint], RpcTransport]:
    def factory(endpoint: Endpoint) -> RpcTransport:
        return HttpRpcTransport(endpoint.url, http_client)

    return factory


def _build_push_source_factory(
    settings: Settings,
    reads: IChainSource,
) -> Callable[[], WebSocketChainSource] | None:
    """None when no WebSocket URL is configured (pull only)."""
    ws_url = (settings.chain.ws_url or "").strip()
    if not ws_url:
        return None
    endpoint = Endpoint.create(ws_url, TransportKind.PUSH)

    def factory() -> WebSocketChainSource:
        return WebSocketChainSource(
            endpoint,
            reads,
            connect_timeout=settings.chain.push_connect_timeout_seconds,
        )

    return factory


def _build_seen_repository(settings: Settings) -> ISeenEntityRepository:
    if settings.storage.backend == "memory":
        return InMemorySeenEntityRepository()
    return SqliteSeenEntityRepository(settings.storage.sqlite_path)


def _build_notification_notifiers(
    settings: Settings,
    styler: EventNotificationStyler,
) -> list[BaseNotificationStrategy]:
    notifiers: list[BaseNotificationStrategy] = []
    if settings.console.enabled:
        notifiers.append(ConsoleNotifier(settings=settings, styler=styler))
    if settings.telegram.enabled:
        notifiers.append(TelegramNotifier(settings=settings, styler=styler))
    return notifiers


class Container(containers.DeclarativeContainer):
    """Application container. Wires settings, RPC access, dedup store, notifications and ingestion."""

    config = providers.Callable(get_settings)

    http_client = providers.Singleton(
        AsyncHttpClient,
        settings=config,
    )

    retry_policy = providers.Singleton(
        RetryPolicy,
        max_attempts=config.provided.retry.max_attempts,
        base_delay=config.provided.retry.base_delay_seconds,
    )

    failover_manager = providers.Singleton(
        FailoverManager,
        endpoints=providers.Callable(_build_pull_endpoints, config),
        transport_factory=providers.Callable(_build_transport_factory, http_client),
        retry_policy=retry_policy,
    )

    pull_source = providers.Singleton(
        HttpChainSource,
        failover=failover_manager,
        poll_interval=config.provided.ingestion.poll_interval_seconds,
    )

    push_source_factory = providers.Singleton(_build_push_source_factory, config, pull_source)

    seen_entity_repository = providers.Singleton(_build_seen_repository, config)

    token_probe = providers.Singleton(
        TokenProbe,
        source=pull_source,
        min_supply=config.provided.detection.min_supply,
    )

    notification_styler = providers.Singleton(EventNotificationStyler)

    notification_service = providers.Singleton(
        NotificationService,
        notifiers=providers.Callable(_build_notification_notifiers, config, notification_styler),
        queue_size=config.provided.telegram.queue_size,
    )

    entity_processor = providers.Singleton(
        EntityProcessor,
        repository=seen_entity_repository,
        probe=token_probe,
        notifications=notification_service,
        native_symbol=config.provided.detection.native_symbol,
        native_decimals=config.provided.detection.native_decimals,
    )

    block_processor = providers.Singleton(
        BlockProcessor,
        source=pull_source,
        entities=entity_processor,
        factories=config.provided.detection.factories,
    )

    ingestion_loop = providers.Singleton(
        IngestionLoop,
        source=pull_source,
        blocks=block_processor,
        entities=entity_processor,
        failover=failover_manager,
        push_source_factory=push_source_factory,
        factories=config.provided.detection.factories,
        poll_interval=config.provided.ingestion.poll_interval_seconds,
        error_poll_interval=config.provided.ingestion.error_poll_interval_seconds,
        max_consecutive_errors=config.provided.ingestion.max_consecutive_errors,
        progress_log_every=config.provided.ingestion.progress_log_every,
        push_connect_timeout=config.provided.chain.push_connect_timeout_seconds,
    )

    health_monitor = providers.Singleton(
        HealthMonitor,
        failover=failover_manager,
        ingestion=ingestion_loop,
    )

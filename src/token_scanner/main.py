# -*- coding: utf-8 -*-
"""
Entry point for the token scanner.

Orchestrates: logging, settings, container, startup endpoint check, ingestion
loop, shutdown (SIGINT/SIGTERM or CancelledError) and final health report.
Events flow: chain source -> ingestion loop -> dedup store -> token probe -> notifications.

Run with: python -m token_scanner.main [ADDRESS]

With ADDRESS the scanner only probes that contract, logs the metadata and exits.

Notebook usage:
    from token_scanner.main import run
    await run([])  # Interrupt kernel to stop; system will shut down on CancelledError.
"""
from __future__ import annotations

import argparse
import asyncio
import signal
import sys
import structlog
from typing import Any

from token_scanner.DI import Container
from token_scanner.config import get_settings
from token_scanner.exceptions import AllEndpointsUnavailable, MissingRequiredConfigError
from token_scanner.logging.config import configure_logging
from token_scanner.notifications.types import NotificationMessage
from token_scanner.persistence.repositories import ISeenEntityRepository
from token_scanner.utils import is_hex_address, parse_hex_int


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="token-scanner",
        description="Watch the chain for new tokens, mints and LP pairs.",
    )
    parser.add_argument(
        "address",
        nargs="?",
        default=None,
        help="Probe this contract address, print its token metadata and exit.",
    )
    return parser.parse_args(argv)


def _setup_signals(shutdown_event: asyncio.Event) -> None:
    try:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, shutdown_event.set)
    except NotImplementedError:
        pass  # Windows has no add_signal_handler


async def _close_resources(
    container: Container,
    logger: Any,
    repository: ISeenEntityRepository | None = None,
) -> None:
    """Close the pull source, the failover session, the HTTP session and the dedup store."""
    await container.pull_source().aclose()
    await container.failover_manager().aclose()
    await container.http_client().aclose()
    if repository is not None:
        await repository.close()
    logger.info("main_shutdown_complete")


async def _probe_address(container: Container, address: str, logger: Any) -> int:
    if not is_hex_address(address):
        logger.error("main_test_invalid_address", entity_address=address)
        return 1
    probe = container.token_probe()
    try:
        meta = await probe.probe(address)
    except AllEndpointsUnavailable as e:
        logger.error("main_test_no_endpoint", error_message=str(e))
        return 1
    if meta is None:
        logger.info("main_test_not_a_token", entity_address=address)
    else:
        logger.info(
            "main_test_token_found",
            entity_address=address,
            token_name=meta.name,
            token_symbol=meta.symbol,
            token_decimals=meta.decimals,
            token_total_supply=str(meta.total_supply),
            token_compliance=meta.compliance,
            token_qualifies=probe.qualifies(meta),
        )
    return 0


async def run(argv: list[str] | None = None) -> int:
    """Run the scanner until shutdown. Returns the process exit code."""
    args = _parse_args(argv)
    configure_logging()
    logger = structlog.get_logger("main")
    settings = get_settings()
    container = Container()

    try:
        failover = container.failover_manager()
    except MissingRequiredConfigError as e:
        logger.error("main_missing_required_config", config_key=str(e))
        return 1

    repository: ISeenEntityRepository | None = None
    try:
        if args.address:
            logger.info("main_test_mode", entity_address=args.address)
            return await _probe_address(container, args.address, logger)

        try:
            height = parse_hex_int(await failover.request("eth_blockNumber"))
        except AllEndpointsUnavailable as e:
            logger.error(
                "main_no_working_endpoint",
                endpoint_count=len(failover.endpoints),
                error_message=str(e),
            )
            return 1

        logger.info(
            "main_scanner_starting",
            block_number=height,
            endpoint_url=failover.active_endpoint.url,
            endpoint_count=len(failover.endpoints),
            push_configured=bool(settings.chain.ws_url),
            factories_count=len(settings.detection.factories),
            min_supply=str(settings.detection.min_supply),
            telegram_enabled=settings.telegram.enabled,
        )

        repository = container.seen_entity_repository()
        ingestion = container.ingestion_loop()
        health_monitor = container.health_monitor()
        notification_service = container.notification_service()
        await notification_service.initialize()
        shutdown_event = asyncio.Event()
        _setup_signals(shutdown_event)

        notification_service.notify(
            NotificationMessage(
                event_type="system_started",
                message="Token scanner started",
                payload={
                    "chain_id": settings.chain.chain_id,
                    "block": height,
                    "endpoints": len(failover.endpoints),
                },
            )
        )

        exit_code = 0
        try:
            await ingestion.run(shutdown_event)
        except AllEndpointsUnavailable as e:
            logger.error(
                "main_all_endpoints_unavailable",
                endpoint_count=len(failover.endpoints),
                error_message=str(e),
            )
            exit_code = 1
        finally:
            report = await health_monitor.health()
            logger.info("main_final_health", **report.to_dict())
            notification_service.notify(
                NotificationMessage(
                    event_type="system_stopped",
                    message="Token scanner stopped",
                    payload={
                        "blocks_processed": report.blocks_processed,
                        "entities_reported": report.entities_reported,
                        "last_block": report.last_processed_block,
                    },
                )
            )
            await notification_service.shutdown()
        return exit_code
    finally:
        await _close_resources(container, logger, repository)


def main() -> None:
    sys.exit(asyncio.run(run()))


__all__ = ["run", "main"]

if __name__ == "__main__":
    main()

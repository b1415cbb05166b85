# -*- coding: utf-8 -*-
"""Entity processor: check-then-act-then-mark for every detection path."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import structlog
from structlog.contextvars import bound_contextvars

from token_scanner.exceptions import AllEndpointsUnavailable
from token_scanner.models.candidate import CandidateEvent, CandidateKind
from token_scanner.notifications.types import NotificationMessage
from token_scanner.utils.validation import normalize_address

if TYPE_CHECKING:
    from token_scanner.models.token_metadata import CreatorStats, TokenMetadata
    from token_scanner.notifications.notification_manager import NotificationService
    from token_scanner.persistence.repositories.interfaces import ISeenEntityRepository
    from token_scanner.services.detection.token_probe import TokenProbe


class EntityProcessor:
    """Shared by the pull loop and every push consumer.

    An address is evaluated at most once per process: it is skipped when
    already stored or currently being evaluated by another task. The
    in-flight claim happens synchronously (no await between the check and
    the claim). The address is marked after evaluation whatever the outcome,
    except when every endpoint is down, so it is retried after a restart.
    """

    def __init__(
        self,
        repository: ISeenEntityRepository,
        probe: TokenProbe,
        notifications: NotificationService,
        *,
        native_symbol: str = "CRO",
        native_decimals: int = 18,
        get_logger: Callable[[str], Any] = structlog.get_logger,
        logger_name: str | None = None,
    ) -> None:
        """Initialize the processor.

        Args:
            repository: Dedup store.
            probe: Token metadata reader.
            notifications: Notification sink (non-blocking enqueue).
            native_symbol: Chain coin symbol shown for the deployer balance.
            native_decimals: Chain coin decimals.
            get_logger: Logger factory (injected) with default of structlog.get_logger.
            logger_name: Optional logger name (defaults to class name).
        """
        self._repository = repository
        self._probe = probe
        self._notifications = notifications
        self._native_symbol = native_symbol
        self._native_decimals = native_decimals
        self._in_flight: set[str] = set()
        self._reported = 0
        self._evaluated = 0
        self._logger = get_logger(logger_name or self.__class__.__name__)

    @property
    def reported(self) -> int:
        """Notifications emitted by this process."""
        return self._reported

    @property
    def evaluated(self) -> int:
        """Entities evaluated (probed or looked up) by this process."""
        return self._evaluated

    @property
    def in_flight(self) -> frozenset[str]:
        return frozenset(self._in_flight)

    async def handle(self, candidate: CandidateEvent, *, path: str | None = None) -> bool:
        """Evaluate a candidate and notify when it qualifies.

        Returns:
            True when a notification was emitted.

        Raises:
            AllEndpointsUnavailable: Always propagated (fatal).
        """
        address = normalize_address(candidate.address)
        path = path or candidate.kind.value
        if address in self._in_flight:
            self._logger.debug("entity_skipped_in_flight", entity_address=address, ingestion_path=path)
            return False
        self._in_flight.add(address)

        mark = True
        try:
            with bound_contextvars(entity_address=address, block_number=candidate.block_number, ingestion_path=path):
                if await self._repository.seen(address):
                    mark = False
                    self._logger.debug("entity_skipped_seen")
                    return False
                self._evaluated += 1
                return await self._evaluate(candidate)
        except (AllEndpointsUnavailable, asyncio.CancelledError):
            mark = False
            raise
        except Exception as e:
            self._logger.warning(
                "entity_processing_failed",
                entity_address=address,
                block_number=candidate.block_number,
                ingestion_path=path,
                error_type=type(e).__name__,
                error_message=str(e),
            )
            return False
        finally:
            try:
                if mark:
                    await self._mark(address, candidate.block_number)
            finally:
                self._in_flight.discard(address)

    async def _mark(self, address: str, block: int) -> None:
        try:
            await self._repository.mark(address, block)
        except Exception as e:
            self._logger.error(
                "entity_mark_failed",
                entity_address=address,
                block_number=block,
                error_type=type(e).__name__,
                error_message=str(e),
            )

    async def _evaluate(self, candidate: CandidateEvent) -> bool:
        if candidate.kind is CandidateKind.PAIR:
            return await self._report_pair(candidate)

        meta = await self._probe.probe(candidate.address)
        if meta is None:
            self._logger.info("entity_not_a_token", candidate_kind=candidate.kind.value)
            return False
        if not self._probe.qualifies(meta):
            self._logger.info(
                "entity_below_min_supply",
                token_symbol=meta.symbol,
                token_total_supply=str(meta.total_supply),
                token_min_supply=str(self._probe.min_supply),
            )
            return False

        if candidate.kind is CandidateKind.MINT:
            message = self._mint_message(candidate, meta)
        else:
            stats = None
            if candidate.deployer:
                stats = await self._probe.creator_stats(candidate.address, candidate.deployer, meta.total_supply)
            message = self._deployment_message(candidate, meta, stats)
        return self._emit(message)

    async def _report_pair(self, candidate: CandidateEvent) -> bool:
        symbol0, symbol1 = await asyncio.gather(
            self._probe.symbol(candidate.token0 or ""),
            self._probe.symbol(candidate.token1 or ""),
        )
        message = NotificationMessage(
            event_type="pair_created",
            message=f"New LP pair {symbol0} / {symbol1} at {candidate.address}",
            payload={
                "address": candidate.address,
                "token0": candidate.token0,
                "token1": candidate.token1,
                "token0_symbol": symbol0,
                "token1_symbol": symbol1,
                "factory": candidate.factory,
                "block_number": candidate.block_number,
                "block_timestamp": candidate.block_timestamp,
                "tx_hash": candidate.tx_hash,
            },
            related_address=candidate.address,
            related_tx_hash=candidate.tx_hash,
        )
        return self._emit(message)

    def _mint_message(self, candidate: CandidateEvent, meta: TokenMetadata) -> NotificationMessage:
        return NotificationMessage(
            event_type="token_minted",
            message=f"New token minted: {meta.symbol} at {candidate.address}",
            payload={
                "address": candidate.address,
                "name": meta.name,
                "symbol": meta.symbol,
                "decimals": meta.decimals,
                "total_supply": str(meta.total_supply),
                "compliance": meta.compliance,
                "amount": str(candidate.amount or 0),
                "recipient": candidate.recipient,
                "block_number": candidate.block_number,
                "block_timestamp": candidate.block_timestamp,
                "tx_hash": candidate.tx_hash,
            },
            related_address=candidate.address,
            related_tx_hash=candidate.tx_hash,
        )

    def _deployment_message(
        self,
        candidate: CandidateEvent,
        meta: TokenMetadata,
        stats: CreatorStats | None,
    ) -> NotificationMessage:
        return NotificationMessage(
            event_type="token_deployed",
            message=f"New token deployed: {meta.symbol} at {candidate.address}",
            payload={
                "address": candidate.address,
                "name": meta.name,
                "symbol": meta.symbol,
                "decimals": meta.decimals,
                "total_supply": str(meta.total_supply),
                "compliance": meta.compliance,
                "creator": candidate.deployer,
                "creator_native_balance": (
                    str(stats.native_balance) if stats and stats.native_balance is not None else None
                ),
                "creator_token_pct": stats.token_share_pct if stats else None,
                "native_symbol": self._native_symbol,
                "native_decimals": self._native_decimals,
                "block_number": candidate.block_number,
                "block_timestamp": candidate.block_timestamp,
                "tx_hash": candidate.tx_hash,
            },
            related_address=candidate.address,
            related_tx_hash=candidate.tx_hash,
        )

    def _emit(self, message: NotificationMessage) -> bool:
        self._notifications.notify(message)
        self._reported += 1
        self._logger.info(
            "entity_reported",
            notification_event_type=message.event_type,
            token_symbol=(message.payload or {}).get("symbol"),
        )
        return True

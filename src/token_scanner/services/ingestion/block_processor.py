# -*- coding: utf-8 -*-
"""Block processor: run the detection scans for one block height."""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

import structlog
from structlog.contextvars import bound_contextvars

from token_scanner.chain.schema import BlockSchema, LogSchema
from token_scanner.exceptions import AllEndpointsUnavailable, MalformedLogError
from token_scanner.services.ingestion.candidates import (
    filter_factories,
    is_creation_tx,
    mint_filter,
    pair_filter,
    parse_deployment,
    parse_mint,
    parse_pair_created,
    tx_hash_of,
)
from token_scanner.utils.validation import normalize_address, parse_hex_int

if TYPE_CHECKING:
    from token_scanner.chain.source import IChainSource
    from token_scanner.models.candidate import CandidateEvent
    from token_scanner.services.ingestion.entity_processor import EntityProcessor


@dataclass
class BlockStats:
    """Outcome of processing one block."""

    block_number: int
    candidates: int = 0
    reported: int = 0
    item_errors: int = 0
    failed_paths: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """True when every scan completed (per-item errors do not count)."""
        return not self.failed_paths


class BlockProcessor:
    """Runs the pair, mint and deployment scans of a block through one EntityProcessor.

    Scans are isolated: a failing scan is logged and recorded in BlockStats
    while the others still run. AllEndpointsUnavailable is never swallowed.
    """

    def __init__(
        self,
        source: IChainSource,
        entities: EntityProcessor,
        *,
        factories: Sequence[str] = (),
        clock: Callable[[], float] = time.time,
        get_logger: Callable[[str], Any] = structlog.get_logger,
        logger_name: str | None = None,
    ) -> None:
        """Initialize the processor.

        Args:
            source: Chain source for logs, blocks and receipts.
            entities: Shared check-then-act-then-mark processor.
            factories: Pair factory addresses; empty means accept any emitter.
            clock: Wall clock for push logs that carry no block timestamp.
            get_logger: Logger factory (injected) with default of structlog.get_logger.
            logger_name: Optional logger name (defaults to class name).
        """
        self._source = source
        self._entities = entities
        self._factories = tuple(normalize_address(f) for f in factories if f)
        self._clock = clock
        self._logger = get_logger(logger_name or self.__class__.__name__)

    @property
    def factories(self) -> tuple[str, ...]:
        return self._factories

    async def process(self, height: int) -> BlockStats:
        """Run all three scans for height."""
        stats = BlockStats(block_number=height)
        with bound_contextvars(block_number=height):
            block = await self._run_scan("block", stats, lambda: self._source.get_block(height, True))
            timestamp = self._timestamp(block)
            await self._run_scan("pair", stats, lambda: self._scan_pairs(height, timestamp, stats))
            await self._run_scan("mint", stats, lambda: self._scan_mints(height, timestamp, stats))
            if block is not None:
                await self._run_scan("deployment", stats, lambda: self._scan_block_deployments(block, height, stats))
        if stats.candidates or stats.failed_paths:
            self._logger.info(
                "block_processed",
                block_number=height,
                block_candidates=stats.candidates,
                block_reported=stats.reported,
                block_item_errors=stats.item_errors,
                block_failed_paths=stats.failed_paths,
            )
        return stats

    async def scan_deployments(self, height: int) -> BlockStats:
        """Deployment scan only (push mode: one call per new head)."""
        stats = BlockStats(block_number=height)
        with bound_contextvars(block_number=height):
            block = await self._run_scan("block", stats, lambda: self._source.get_block(height, True))
            if block is not None:
                await self._run_scan("deployment", stats, lambda: self._scan_block_deployments(block, height, stats))
        return stats

    async def handle_log(self, log: LogSchema, *, path: str) -> BlockStats | None:
        """Turn one pushed mint or pair log into a candidate and process it.

        Returns None when the log carries no usable block number.
        """
        try:
            height = parse_hex_int(log.get("blockNumber"))
            ts_raw = log.get("blockTimestamp")  # type: ignore[typeddict-item]
            timestamp = parse_hex_int(ts_raw) if ts_raw else int(self._clock())
        except (AttributeError, TypeError, ValueError) as e:
            self._log_malformed(log, path, None, e)
            return None
        stats = BlockStats(block_number=height)
        parser = parse_pair_created if path == "pair" else parse_mint
        if path == "pair" and self._factories and not filter_factories([log], self._factories):
            return stats
        await self._handle_log(log, parser, height, timestamp, stats, path)
        return stats

    async def _run_scan[T](self, path: str, stats: BlockStats, fn: Callable[[], Awaitable[T]]) -> T | None:
        try:
            return await fn()
        except AllEndpointsUnavailable:
            raise
        except Exception as e:
            stats.failed_paths.append(path)
            self._logger.warning(
                "block_scan_failed",
                block_number=stats.block_number,
                ingestion_path=path,
                error_type=type(e).__name__,
                error_message=str(e),
            )
            return None

    @staticmethod
    def _timestamp(block: BlockSchema | None) -> int | None:
        if not block or block.get("timestamp") is None:
            return None
        try:
            return parse_hex_int(block.get("timestamp"))
        except (TypeError, ValueError):
            return None

    async def _scan_pairs(self, height: int, timestamp: int | None, stats: BlockStats) -> None:
        logs = await self._source.get_logs(pair_filter(height))
        for log in filter_factories(logs, self._factories):
            await self._handle_log(log, parse_pair_created, height, timestamp, stats, "pair")

    async def _scan_mints(self, height: int, timestamp: int | None, stats: BlockStats) -> None:
        for log in await self._source.get_logs(mint_filter(height)):
            await self._handle_log(log, parse_mint, height, timestamp, stats, "mint")

    async def _handle_log(
        self,
        log: LogSchema,
        parser: Callable[..., CandidateEvent],
        height: int,
        timestamp: int | None,
        stats: BlockStats,
        path: str,
    ) -> None:
        try:
            candidate = parser(log, block_number=height, block_timestamp=timestamp)
        except MalformedLogError as e:
            stats.item_errors += 1
            self._log_malformed(log, path, height, e)
            return
        await self._handle_candidate(candidate, stats, path)

    def _log_malformed(self, log: Any, path: str, height: int | None, error: Exception) -> None:
        self._logger.warning(
            "log_malformed",
            block_number=height,
            ingestion_path=path,
            log_tx_hash=log.get("transactionHash") if isinstance(log, dict) else None,
            error_type=type(error).__name__,
            error_message=str(error),
        )

    async def _scan_block_deployments(self, block: BlockSchema, height: int, stats: BlockStats) -> None:
        timestamp = self._timestamp(block)
        for tx in block.get("transactions") or []:
            if not is_creation_tx(tx):
                continue
            tx_hash = tx_hash_of(tx)
            if not tx_hash:
                continue
            try:
                receipt = await self._source.get_receipt(tx_hash)
            except AllEndpointsUnavailable:
                raise
            except Exception as e:
                stats.item_errors += 1
                self._logger.warning(
                    "receipt_fetch_failed",
                    block_number=height,
                    ingestion_path="deployment",
                    tx_hash=tx_hash,
                    error_type=type(e).__name__,
                    error_message=str(e),
                )
                continue
            if receipt is None:
                continue
            candidate = parse_deployment(receipt, block_number=height, block_timestamp=timestamp)
            if candidate is None:
                continue
            if candidate.deployer is None and isinstance(tx, dict) and tx.get("from"):
                candidate = _with_deployer(candidate, str(tx.get("from")))
            await self._handle_candidate(candidate, stats, "deployment")

    async def _handle_candidate(self, candidate: CandidateEvent, stats: BlockStats, path: str) -> None:
        stats.candidates += 1
        if await self._entities.handle(candidate, path=path):
            stats.reported += 1


def _with_deployer(candidate: CandidateEvent, deployer: str) -> CandidateEvent:
    return replace(candidate, deployer=normalize_address(deployer))

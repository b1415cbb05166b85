# -*- coding: utf-8 -*-
"""Ingestion loop: push (WebSocket subscriptions) with one-way fallback to pull (HTTP polling)."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Sequence
from enum import Enum
from typing import TYPE_CHECKING, Any

import structlog

from token_scanner.chain.subscription import Subscription
from token_scanner.exceptions import AllEndpointsUnavailable, PushDisconnected
from token_scanner.services.ingestion.candidates import mint_filter, pair_filter
from token_scanner.utils.validation import parse_hex_int

if TYPE_CHECKING:
    from token_scanner.chain.schema import BlockSchema, LogSchema
    from token_scanner.chain.source import IChainSource
    from token_scanner.chain.ws_source import WebSocketChainSource
    from token_scanner.services.ingestion.block_processor import BlockProcessor, BlockStats
    from token_scanner.services.ingestion.entity_processor import EntityProcessor
    from token_scanner.services.resilience.failover import FailoverManager


class IngestionState(str, Enum):
    """Lifecycle of the ingestion loop."""

    STARTING = "starting"
    LIVE_PUSH = "live_push"
    LIVE_PULL = "live_pull"
    DRAINING = "draining"
    STOPPED = "stopped"


class IngestionLoop:
    """Keeps a gap-free view of new blocks and feeds them to the block processor.

    Push is tried once at startup when a push source is configured. Any
    push failure (connect, liveness check or a later disconnect) switches to
    pull for the rest of the process. Pull walks a monotonic cursor one block
    at a time up to the chain head.
    """

    def __init__(
        self,
        source: IChainSource,
        blocks: BlockProcessor,
        entities: EntityProcessor,
        failover: FailoverManager,
        *,
        push_source_factory: Callable[[], WebSocketChainSource] | None = None,
        factories: Sequence[str] = (),
        poll_interval: float = 1.5,
        error_poll_interval: float = 3.0,
        max_consecutive_errors: int = 10,
        progress_log_every: int = 100,
        push_connect_timeout: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
        get_logger: Callable[[str], Any] = structlog.get_logger,
        logger_name: str | None = None,
    ) -> None:
        """Initialize the loop.

        Args:
            source: Pull source (HTTP through the failover manager).
            blocks: Runs the detection scans for a block.
            entities: Shared dedup/probe/notify processor (for counters).
            failover: Rotated after max_consecutive_errors failed steps.
            push_source_factory: Builds the push source; None disables push.
            factories: Pair factories for push subscriptions (one each).
            poll_interval: Seconds between pull steps.
            error_poll_interval: Seconds between pull steps while errors are pending.
            max_consecutive_errors: Failed steps before rotating the endpoint.
            progress_log_every: Blocks between ingestion_progress logs.
            push_connect_timeout: Seconds allowed for push connect + liveness check.
            clock: Monotonic clock for uptime.
            get_logger: Logger factory (injected) with default of structlog.get_logger.
            logger_name: Optional logger name (defaults to class name).
        """
        self._source = source
        self._blocks = blocks
        self._entities = entities
        self._failover = failover
        self._push_source_factory = push_source_factory
        self._factories = tuple(factories)
        self._poll_interval = poll_interval
        self._error_poll_interval = error_poll_interval
        self._max_consecutive_errors = max_consecutive_errors
        self._progress_log_every = max(1, progress_log_every)
        self._push_connect_timeout = push_connect_timeout
        self._clock = clock
        self._logger = get_logger(logger_name or self.__class__.__name__)

        self.state = IngestionState.STARTING
        self.cursor: int | None = None
        self.consecutive_errors = 0
        self.blocks_processed = 0
        self.last_processed_block: int | None = None
        self.started_at = clock()
        self._stopping = False

    @property
    def mode(self) -> str | None:
        """'push', 'pull' or None before a mode was chosen."""
        if self.state is IngestionState.LIVE_PUSH:
            return "push"
        if self.state is IngestionState.LIVE_PULL:
            return "pull"
        return None

    @property
    def entities_reported(self) -> int:
        return self._entities.reported

    @property
    def uptime_seconds(self) -> float:
        return self._clock() - self.started_at

    def _set_state(self, state: IngestionState) -> None:
        if state is self.state:
            return
        self._logger.info(
            "ingestion_state_changed",
            ingestion_state_from=self.state.value,
            ingestion_state_to=state.value,
        )
        self.state = state

    # -------------------------------------------------------------------------
    # Run
    # -------------------------------------------------------------------------

    async def run(self, shutdown_event: asyncio.Event) -> None:
        """Ingest until shutdown_event is set.

        Raises:
            AllEndpointsUnavailable: No endpoint answers; the process should exit.
        """
        self._stopping = False
        self._set_state(IngestionState.STARTING)
        try:
            push = await self._select_mode()
            if push is not None and not shutdown_event.is_set():
                await self._run_push(push, shutdown_event)
            elif push is not None:
                await push.aclose()
            if not shutdown_event.is_set():
                await self._run_pull(shutdown_event)
        finally:
            self._stopping = True
            self._set_state(IngestionState.DRAINING)
            self._set_state(IngestionState.STOPPED)
            self._logger.info(
                "ingestion_stopped",
                ingestion_blocks_processed=self.blocks_processed,
                ingestion_entities_reported=self.entities_reported,
                ingestion_last_block=self.last_processed_block,
            )

    async def _select_mode(self) -> WebSocketChainSource | None:
        """Connect the push source and ask it for the head; None means use pull."""
        if self._push_source_factory is None:
            self._logger.info("push_not_configured")
            return None
        push = self._push_source_factory()
        try:
            async with asyncio.timeout(self._push_connect_timeout):
                await push.connect()
                height = await push.current_height()
        except Exception as e:
            self._logger.warning(
                "push_unavailable",
                endpoint_url=push.endpoint.url,
                error_type=type(e).__name__,
                error_message=str(e),
            )
            await push.aclose()
            return None
        self._logger.info("push_connected", endpoint_url=push.endpoint.url, block_number=height)
        return push

    # -------------------------------------------------------------------------
    # Push
    # -------------------------------------------------------------------------

    async def _run_push(self, push: WebSocketChainSource, shutdown_event: asyncio.Event) -> None:
        subscriptions: list[Subscription[Any]] = []
        tasks: list[asyncio.Task[None]] = []
        failure: BaseException | None = None
        try:
            heads = await push.subscribe_blocks()
            subscriptions.append(heads)
            tasks.append(asyncio.create_task(self._consume_heads(heads), name="push_new_heads"))

            mints = await push.subscribe_logs(mint_filter())
            subscriptions.append(mints)
            tasks.append(asyncio.create_task(self._consume_logs(mints, "mint"), name="push_mint_logs"))

            for factory in self._factories or (None,):
                pairs = await push.subscribe_logs(pair_filter(factory=factory))
                subscriptions.append(pairs)
                tasks.append(asyncio.create_task(self._consume_logs(pairs, "pair"), name="push_pair_logs"))
        except Exception as e:
            failure = e

        if failure is None:
            self._set_state(IngestionState.LIVE_PUSH)
            stop = asyncio.create_task(shutdown_event.wait(), name="push_shutdown_wait")
            done, _ = await asyncio.wait([*tasks, stop], return_when=asyncio.FIRST_COMPLETED)
            stop.cancel()
            for task in done:
                if task is not stop and not task.cancelled():
                    failure = task.exception() or PushDisconnected(f"{task.get_name()} ended")
                    break

        self._set_state(IngestionState.DRAINING)
        for subscription in subscriptions:
            await subscription.close()
        for task in tasks:
            task.cancel()
        results = await asyncio.gather(*tasks, return_exceptions=True)
        await push.aclose()

        fatal = next((r for r in results if isinstance(r, AllEndpointsUnavailable)), None)
        if isinstance(failure, AllEndpointsUnavailable):
            fatal = failure
        if fatal is not None:
            raise fatal
        if failure is not None and not shutdown_event.is_set():
            self._logger.warning(
                "push_fallback_to_pull",
                endpoint_url=push.endpoint.url,
                error_type=type(failure).__name__,
                error_message=str(failure),
                block_number=self.last_processed_block,
            )

    async def _consume_heads(self, subscription: Subscription[BlockSchema]) -> None:
        async for header in subscription:
            try:
                height = parse_hex_int(header.get("number"))
            except (AttributeError, TypeError, ValueError) as e:
                self._logger.warning(
                    "push_header_malformed",
                    error_type=type(e).__name__,
                    error_message=str(e),
                )
                continue
            stats = await self._blocks.scan_deployments(height)
            self._after_block(stats)

    async def _consume_logs(self, subscription: Subscription[LogSchema], path: str) -> None:
        async for log in subscription:
            if isinstance(log, dict) and log.get("removed"):
                continue
            await self._blocks.handle_log(log, path=path)

    # -------------------------------------------------------------------------
    # Pull
    # -------------------------------------------------------------------------

    async def _run_pull(self, shutdown_event: asyncio.Event) -> None:
        if self.last_processed_block is not None:
            self.cursor = self.last_processed_block
        else:
            self.cursor = await self._source.current_height()
        self._set_state(IngestionState.LIVE_PULL)
        self._logger.info("pull_started", block_number=self.cursor)

        while not shutdown_event.is_set():
            await self.pull_step(shutdown_event)
            delay = self._error_poll_interval if self.consecutive_errors > 0 else self._poll_interval
            try:
                await asyncio.wait_for(shutdown_event.wait(), timeout=delay)
            except TimeoutError:
                pass

    async def pull_step(self, shutdown_event: asyncio.Event | None = None) -> int:
        """Process every block after the cursor up to the current head.

        Returns:
            Number of blocks processed.

        Raises:
            AllEndpointsUnavailable: Propagated from the source or a rotation.
        """
        try:
            latest = await self._source.current_height()
        except AllEndpointsUnavailable:
            raise
        except Exception as e:
            self._logger.warning(
                "pull_head_fetch_failed",
                error_type=type(e).__name__,
                error_message=str(e),
            )
            await self._record_error()
            return 0

        if self.cursor is None:
            self.cursor = latest
            return 0

        processed = 0
        while self.cursor < latest:
            if shutdown_event is not None and shutdown_event.is_set():
                break
            self.cursor += 1
            stats = await self._blocks.process(self.cursor)
            self._after_block(stats)
            processed += 1
            if stats.ok:
                self.consecutive_errors = 0
            else:
                await self._record_error()
        return processed

    async def _record_error(self) -> None:
        self.consecutive_errors += 1
        if self.consecutive_errors >= self._max_consecutive_errors:
            self._logger.warning(
                "pull_too_many_errors_rotating",
                ingestion_consecutive_errors=self.consecutive_errors,
                endpoint_url=self._failover.active_endpoint.url,
            )
            self.consecutive_errors = 0
            await self._failover.rotate()

    def _after_block(self, stats: BlockStats) -> None:
        self.blocks_processed += 1
        if self.last_processed_block is None or stats.block_number > self.last_processed_block:
            self.last_processed_block = stats.block_number
        if self.blocks_processed % self._progress_log_every == 0:
            self._logger.info(
                "ingestion_progress",
                ingestion_blocks_processed=self.blocks_processed,
                ingestion_entities_reported=self.entities_reported,
                block_number=self.last_processed_block,
                ingestion_mode=self.mode,
            )

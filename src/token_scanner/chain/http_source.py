# -*- coding: utf-8 -*-
"""Pull chain source: discrete JSON-RPC requests over HTTP through the failover manager."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, cast

import structlog

from token_scanner.chain.schema import BlockSchema, LogFilter, LogSchema, ReceiptSchema
from token_scanner.chain.source import IChainSource
from token_scanner.chain.subscription import Subscription
from token_scanner.exceptions import AllEndpointsUnavailable, SubscriptionClosed
from token_scanner.utils.validation import parse_hex_int

if TYPE_CHECKING:
    from token_scanner.services.resilience.failover import FailoverManager


class HttpChainSource(IChainSource):
    """IChainSource backed by HTTP JSON-RPC.

    Every call goes through FailoverManager.with_fallback(), so it is retried
    with backoff and moved to the next endpoint when retries run out.
    subscribe_blocks()/subscribe_logs() poll in a background task, which keeps
    this source interchangeable with the push source.
    """

    def __init__(
        self,
        failover: FailoverManager,
        *,
        poll_interval: float = 1.5,
        get_logger: Callable[[str], Any] = structlog.get_logger,
        logger_name: str | None = None,
    ) -> None:
        """Initialize the source.

        Args:
            failover: Owner of the active endpoint session.
            poll_interval: Seconds between polls for pull-backed subscriptions.
            get_logger: Logger factory (injected) with default of structlog.get_logger.
            logger_name: Optional logger name (defaults to class name).
        """
        self._failover = failover
        self._poll_interval = poll_interval
        self._tasks: set[asyncio.Task[None]] = set()
        self._subscriptions: list[Subscription[Any]] = []
        self._logger = get_logger(logger_name or self.__class__.__name__)

    @property
    def failover(self) -> FailoverManager:
        return self._failover

    async def current_height(self) -> int:
        return parse_hex_int(await self._failover.request("eth_blockNumber"))

    async def get_block(self, height: int, include_transactions: bool = False) -> BlockSchema | None:
        result = await self._failover.request(
            "eth_getBlockByNumber", [hex(height), include_transactions]
        )
        return cast(BlockSchema, result) if isinstance(result, dict) else None

    async def get_logs(self, log_filter: LogFilter) -> list[LogSchema]:
        result = await self._failover.request("eth_getLogs", [dict(log_filter)])
        if not isinstance(result, list):
            return []
        return cast(list[LogSchema], result)

    async def get_receipt(self, tx_hash: str) -> ReceiptSchema | None:
        result = await self._failover.request("eth_getTransactionReceipt", [tx_hash])
        return cast(ReceiptSchema, result) if isinstance(result, dict) else None

    async def get_code(self, address: str) -> str:
        result = await self._failover.request("eth_getCode", [address, "latest"])
        return str(result) if result else "0x"

    async def get_balance(self, address: str) -> int:
        return parse_hex_int(await self._failover.request("eth_getBalance", [address, "latest"]))

    async def call(self, to: str, data: str) -> str:
        result = await self._failover.request("eth_call", [{"to": to, "data": data}, "latest"])
        return str(result) if result is not None else "0x"

    # -------------------------------------------------------------------------
    # Pull-backed subscriptions
    # -------------------------------------------------------------------------

    def _spawn(self, subscription: Subscription[Any], coro: Any) -> None:
        task = asyncio.create_task(coro, name=f"http_poll_{subscription.name}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        self._subscriptions.append(subscription)

    async def _poll_heights(self, on_height: Callable[[int], Any], subscription: Subscription[Any]) -> None:
        last: int | None = None
        try:
            while not subscription.closed:
                try:
                    latest = await self.current_height()
                    start = latest if last is None else last + 1
                    for height in range(start, latest + 1):
                        await on_height(height)
                        last = height
                except AllEndpointsUnavailable as e:
                    subscription.fail(e)
                    return
                except SubscriptionClosed:
                    return
                except Exception as e:
                    self._logger.warning(
                        "http_poll_failed",
                        subscription_name=subscription.name,
                        error_type=type(e).__name__,
                        error_message=str(e),
                    )
                await asyncio.sleep(self._poll_interval)
        except asyncio.CancelledError:
            pass

    async def subscribe_blocks(self) -> Subscription[BlockSchema]:
        subscription: Subscription[BlockSchema] = Subscription("new_heads")

        async def on_height(height: int) -> None:
            block = await self.get_block(height)
            if block is not None:
                subscription.publish(block)

        self._spawn(subscription, self._poll_heights(on_height, subscription))
        return subscription

    async def subscribe_logs(self, log_filter: LogFilter) -> Subscription[LogSchema]:
        subscription: Subscription[LogSchema] = Subscription("logs")

        async def on_height(height: int) -> None:
            block_filter = cast(LogFilter, {**log_filter, "fromBlock": hex(height), "toBlock": hex(height)})
            for log in await self.get_logs(block_filter):
                subscription.publish(log)

        self._spawn(subscription, self._poll_heights(on_height, subscription))
        return subscription

    async def aclose(self) -> None:
        """Stop polling tasks and close their subscriptions. The failover session is closed by its owner."""
        for subscription in self._subscriptions:
            await subscription.close()
        self._subscriptions.clear()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

# -*- coding: utf-8 -*-
"""Chain source interface: where blocks, logs and receipts come from."""

from __future__ import annotations

from abc import ABC, abstractmethod

from token_scanner.chain.schema import BlockSchema, LogFilter, LogSchema, ReceiptSchema
from token_scanner.chain.subscription import Subscription


class IChainSource(ABC):
    """Abstract chain access. Pull (HTTP polling) and push (WebSocket) are interchangeable.

    Calls raise the RpcError family or AllEndpointsUnavailable. Push
    subscriptions raise PushDisconnected from iteration when the transport dies.
    """

    @abstractmethod
    async def current_height(self) -> int:
        """Return the latest block number."""
        ...

    @abstractmethod
    async def get_block(self, height: int, include_transactions: bool = False) -> BlockSchema | None:
        """Return the block at height, or None if the node does not have it yet."""
        ...

    @abstractmethod
    async def get_logs(self, log_filter: LogFilter) -> list[LogSchema]:
        """Return logs matching the filter."""
        ...

    @abstractmethod
    async def get_receipt(self, tx_hash: str) -> ReceiptSchema | None:
        """Return the transaction receipt, or None when unknown."""
        ...

    @abstractmethod
    async def get_code(self, address: str) -> str:
        """Return deployed bytecode ('0x' when there is none)."""
        ...

    @abstractmethod
    async def get_balance(self, address: str) -> int:
        """Return the native balance of address in wei."""
        ...

    @abstractmethod
    async def call(self, to: str, data: str) -> str:
        """Perform a read-only eth_call at 'latest' and return the hex result."""
        ...

    @abstractmethod
    async def subscribe_blocks(self) -> Subscription[BlockSchema]:
        """Subscribe to new block headers."""
        ...

    @abstractmethod
    async def subscribe_logs(self, log_filter: LogFilter) -> Subscription[LogSchema]:
        """Subscribe to logs matching the filter."""
        ...

    @abstractmethod
    async def aclose(self) -> None:
        """Close subscriptions and release transport resources."""
        ...

# -*- coding: utf-8 -*-
"""Shared pytest fixtures for unit tests."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from token_scanner.chain.schema import BlockSchema, LogFilter, LogSchema, ReceiptSchema
from token_scanner.chain.source import IChainSource
from token_scanner.chain.subscription import Subscription
from token_scanner.clients.rpc_transport import RpcTransport
from token_scanner.notifications.types import NotificationMessage
from token_scanner.persistence.repositories.in_memory import InMemorySeenEntityRepository
from token_scanner.services.detection.token_probe import (
    SELECTOR_DECIMALS,
    SELECTOR_NAME,
    SELECTOR_SYMBOL,
    SELECTOR_TOTAL_SUPPLY,
)
from token_scanner.utils.validation import parse_hex_int

TOKEN = "0x1111111111111111111111111111111111111111"
DEPLOYER = "0x2222222222222222222222222222222222222222"
RECIPIENT = "0x3333333333333333333333333333333333333333"
FACTORY = "0x4444444444444444444444444444444444444444"
PAIR = "0x5555555555555555555555555555555555555555"
TOKEN_B = "0x6666666666666666666666666666666666666666"


def abi_string(text: str) -> str:
    """ABI-encode a `string` return value as eth_call would return it."""
    raw = text.encode("utf-8")
    padded = raw.ljust(((len(raw) + 31) // 32) * 32 or 32, b"\x00")
    return "0x" + (32).to_bytes(32, "big").hex() + len(raw).to_bytes(32, "big").hex() + padded.hex()


def abi_uint(value: int) -> str:
    return "0x" + value.to_bytes(32, "big").hex()


def null_logger_factory(_name: str) -> Any:
    class _Null:
        def __getattr__(self, _attr: str) -> Callable[..., None]:
            return lambda *args, **kwargs: None

    return _Null()


class FakeTransport(RpcTransport):
    """RpcTransport answering from a method -> handler map.

    A handler is a value, an exception instance (raised) or a list consumed
    one item per call.
    """

    def __init__(self, url: str, handlers: dict[str, Any] | None = None) -> None:
        self._url = url
        self.handlers: dict[str, Any] = handlers or {}
        self.calls: list[tuple[str, list[Any]]] = []
        self.closed = False

    @property
    def url(self) -> str:
        return self._url

    async def request(self, method: str, params: list[Any] | None = None) -> Any:
        self.calls.append((method, list(params or [])))
        handler = self.handlers.get(method)
        if isinstance(handler, list):
            handler = handler.pop(0) if handler else None
        if isinstance(handler, BaseException):
            raise handler
        if callable(handler):
            return handler(params or [])
        return handler

    async def aclose(self) -> None:
        self.closed = True


class FakeChainSource(IChainSource):
    """In-memory chain: blocks, logs, receipts and eth_call results keyed by inputs."""

    def __init__(self) -> None:
        self.height = 100
        self.blocks: dict[int, BlockSchema] = {}
        self.logs: list[LogSchema] = []
        self.receipts: dict[str, ReceiptSchema] = {}
        self.code: dict[str, str] = {}
        self.calls: dict[tuple[str, str], str] = {}
        self.balances: dict[str, int] = {}
        self.errors: dict[str, BaseException] = {}
        self.requests: list[tuple[str, Any]] = []

    def _maybe_fail(self, op: str) -> None:
        error = self.errors.get(op)
        if error is not None:
            raise error

    def add_token(self, address: str, *, name: str | None = "Test Token", symbol: str | None = "TST",
                  decimals: int = 18, total_supply: int = 10**24) -> None:
        self.code[address.lower()] = "0x6080604052"
        if name is not None:
            self.calls[(address.lower(), SELECTOR_NAME)] = abi_string(name)
        if symbol is not None:
            self.calls[(address.lower(), SELECTOR_SYMBOL)] = abi_string(symbol)
        self.calls[(address.lower(), SELECTOR_DECIMALS)] = abi_uint(decimals)
        self.calls[(address.lower(), SELECTOR_TOTAL_SUPPLY)] = abi_uint(total_supply)

    async def current_height(self) -> int:
        self.requests.append(("current_height", None))
        self._maybe_fail("current_height")
        return self.height

    async def get_block(self, height: int, include_transactions: bool = False) -> BlockSchema | None:
        self.requests.append(("get_block", height))
        self._maybe_fail("get_block")
        return self.blocks.get(height, {"number": hex(height), "timestamp": hex(1_700_000_000), "transactions": []})

    async def get_logs(self, log_filter: LogFilter) -> list[LogSchema]:
        self.requests.append(("get_logs", dict(log_filter)))
        topic0 = (log_filter.get("topics") or [None])[0]
        self._maybe_fail(f"get_logs:{topic0}")
        lo = parse_hex_int(log_filter.get("fromBlock")) if log_filter.get("fromBlock") else None
        hi = parse_hex_int(log_filter.get("toBlock")) if log_filter.get("toBlock") else None
        out: list[LogSchema] = []
        for log in self.logs:
            if topic0 and log["topics"][0] != topic0:
                continue
            number = parse_hex_int(log.get("blockNumber"))
            if lo is not None and number < lo:
                continue
            if hi is not None and number > hi:
                continue
            out.append(log)
        return out

    async def get_receipt(self, tx_hash: str) -> ReceiptSchema | None:
        self.requests.append(("get_receipt", tx_hash))
        self._maybe_fail("get_receipt")
        return self.receipts.get(tx_hash)

    async def get_code(self, address: str) -> str:
        self.requests.append(("get_code", address))
        self._maybe_fail("get_code")
        return self.code.get(address.lower(), "0x")

    async def get_balance(self, address: str) -> int:
        self.requests.append(("get_balance", address))
        self._maybe_fail("get_balance")
        return self.balances.get(address.lower(), 0)

    async def call(self, to: str, data: str) -> str:
        self.requests.append(("call", (to, data)))
        self._maybe_fail("call")
        key = (to.lower(), data if len(data) == 10 else data[:10])
        return self.calls.get((to.lower(), data), self.calls.get(key, "0x"))

    async def subscribe_blocks(self) -> Subscription[BlockSchema]:
        return Subscription("new_heads")

    async def subscribe_logs(self, log_filter: LogFilter) -> Subscription[LogSchema]:
        return Subscription("logs")

    async def aclose(self) -> None:
        return None


class RecordingNotifications:
    """Stands in for NotificationService: keeps every notify() call."""

    def __init__(self) -> None:
        self.messages: list[NotificationMessage] = []

    def notify(self, message: NotificationMessage) -> None:
        self.messages.append(message)


@pytest.fixture
def chain() -> FakeChainSource:
    """Fresh fake chain per test."""
    return FakeChainSource()


@pytest.fixture
def seen_repo() -> InMemorySeenEntityRepository:
    """Fresh in-memory dedup store per test."""
    return InMemorySeenEntityRepository()


@pytest.fixture
def notifications() -> RecordingNotifications:
    return RecordingNotifications()


@pytest.fixture
def no_sleep() -> Callable[[float], Any]:
    """Sleep replacement that records requested delays."""
    delays: list[float] = []

    async def _sleep(delay: float) -> None:
        delays.append(delay)

    _sleep.delays = delays  # type: ignore[attr-defined]
    return _sleep

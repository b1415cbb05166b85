# -*- coding: utf-8 -*-
"""Unit tests for IngestionLoop (pull cursor, endpoint rotation, push fallback)."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from types import SimpleNamespace
from typing import Any

import pytest

from conftest import FakeChainSource, null_logger_factory
from token_scanner.chain.subscription import Subscription
from token_scanner.exceptions import AllEndpointsUnavailable, PushDisconnected, TransientRpcError
from token_scanner.models.endpoint import Endpoint, TransportKind
from token_scanner.services.ingestion.block_processor import BlockStats
from token_scanner.services.ingestion.ingestion_loop import IngestionLoop, IngestionState
from token_scanner.utils.validation import parse_hex_int


class _Blocks:
    def __init__(self, *, failing: Callable[[int], bool] = lambda _h: False) -> None:
        self.failing = failing
        self.processed: list[int] = []
        self.scanned: list[int] = []
        self.logs: list[tuple[dict[str, Any], str]] = []

    async def process(self, height: int) -> BlockStats:
        self.processed.append(height)
        return BlockStats(block_number=height, failed_paths=["mint"] if self.failing(height) else [])

    async def scan_deployments(self, height: int) -> BlockStats:
        self.scanned.append(height)
        return BlockStats(block_number=height)

    async def handle_log(self, log: dict[str, Any], *, path: str) -> BlockStats:
        self.logs.append((log, path))
        return BlockStats(block_number=parse_hex_int(log.get("blockNumber")))


class _StateLog:
    """Logger factory keeping the target of every ingestion_state_changed event."""

    def __init__(self) -> None:
        self.transitions: list[str] = []

    def __call__(self, _name: str) -> _StateLog:
        return self

    def info(self, event: str, **kwargs: Any) -> None:
        if event == "ingestion_state_changed":
            self.transitions.append(kwargs["ingestion_state_to"])

    def __getattr__(self, _attr: str) -> Callable[..., None]:
        return lambda *args, **kwargs: None


class _Failover:
    def __init__(self) -> None:
        self.active_endpoint = Endpoint.create("https://a.example", TransportKind.PULL)
        self.rotations = 0

    async def rotate(self) -> Endpoint:
        self.rotations += 1
        return self.active_endpoint


class _PushSource:
    """Push source double exposing its subscriptions to the test."""

    def __init__(self, *, connect_error: Exception | None = None) -> None:
        self.endpoint = Endpoint.create("wss://ws.example", TransportKind.PUSH)
        self.connect_error = connect_error
        self.heads: Subscription[Any] | None = None
        self.log_subscriptions: list[tuple[dict[str, Any], Subscription[Any]]] = []
        self.closed = False

    async def connect(self) -> None:
        if self.connect_error is not None:
            raise self.connect_error

    async def current_height(self) -> int:
        return 150

    async def subscribe_blocks(self) -> Subscription[Any]:
        self.heads = Subscription("new_heads")
        return self.heads

    async def subscribe_logs(self, log_filter: dict[str, Any]) -> Subscription[Any]:
        subscription: Subscription[Any] = Subscription("logs")
        self.log_subscriptions.append((dict(log_filter), subscription))
        return subscription

    async def aclose(self) -> None:
        self.closed = True


def _loop(
    chain: FakeChainSource,
    blocks: _Blocks,
    failover: _Failover | None = None,
    **kwargs: Any,
) -> IngestionLoop:
    return IngestionLoop(
        chain,
        blocks,  # type: ignore[arg-type]
        SimpleNamespace(reported=0),  # type: ignore[arg-type]
        failover or _Failover(),  # type: ignore[arg-type]
        poll_interval=0.01,
        error_poll_interval=0.01,
        push_connect_timeout=1.0,
        **{"get_logger": null_logger_factory, **kwargs},
    )


async def _eventually(condition: Callable[[], bool], timeout: float = 2.0) -> None:
    async with asyncio.timeout(timeout):
        while not condition():
            await asyncio.sleep(0.005)


async def test_first_step_seeds_cursor_without_processing(chain: FakeChainSource) -> None:
    blocks = _Blocks()
    loop = _loop(chain, blocks)

    assert await loop.pull_step() == 0
    assert loop.cursor == chain.height
    assert blocks.processed == []


async def test_cursor_advances_one_block_at_a_time(chain: FakeChainSource) -> None:
    blocks = _Blocks()
    loop = _loop(chain, blocks)
    loop.cursor = 100
    chain.height = 103

    assert await loop.pull_step() == 3
    assert await loop.pull_step() == 0
    chain.height = 104
    assert await loop.pull_step() == 1

    assert blocks.processed == [101, 102, 103, 104]
    assert loop.cursor == 104
    assert loop.last_processed_block == 104
    assert loop.blocks_processed == 4


async def test_rotates_after_max_consecutive_failed_blocks(chain: FakeChainSource) -> None:
    failover = _Failover()
    loop = _loop(chain, _Blocks(failing=lambda _h: True), failover, max_consecutive_errors=10)
    loop.cursor = 0
    chain.height = 9

    await loop.pull_step()
    assert failover.rotations == 0
    assert loop.consecutive_errors == 9

    chain.height = 10
    await loop.pull_step()
    assert failover.rotations == 1
    assert loop.consecutive_errors == 0


async def test_clean_block_resets_error_count(chain: FakeChainSource) -> None:
    failover = _Failover()
    loop = _loop(chain, _Blocks(failing=lambda h: h % 5 != 0), failover, max_consecutive_errors=10)
    loop.cursor = 0
    chain.height = 30

    await loop.pull_step()

    assert failover.rotations == 0
    assert loop.consecutive_errors == 0


async def test_failed_head_fetches_count_towards_rotation(chain: FakeChainSource) -> None:
    failover = _Failover()
    loop = _loop(chain, _Blocks(), failover, max_consecutive_errors=3)
    chain.errors["current_height"] = TransientRpcError("timeout")

    for _ in range(3):
        assert await loop.pull_step() == 0

    assert failover.rotations == 1


async def test_all_endpoints_unavailable_propagates_from_pull(chain: FakeChainSource) -> None:
    loop = _loop(chain, _Blocks())
    chain.errors["current_height"] = AllEndpointsUnavailable(tried=2)

    with pytest.raises(AllEndpointsUnavailable):
        await loop.run(asyncio.Event())

    assert loop.state is IngestionState.STOPPED


async def test_pull_only_when_push_not_configured(chain: FakeChainSource) -> None:
    blocks = _Blocks()
    loop = _loop(chain, blocks)
    shutdown = asyncio.Event()
    chain.height = 10

    task = asyncio.create_task(loop.run(shutdown))
    await _eventually(lambda: loop.state is IngestionState.LIVE_PULL)
    chain.height = 12
    await _eventually(lambda: blocks.processed == [11, 12])
    shutdown.set()
    await task

    assert loop.state is IngestionState.STOPPED
    assert loop.mode is None


async def test_push_connect_failure_falls_back_to_pull(chain: FakeChainSource) -> None:
    push = _PushSource(connect_error=PushDisconnected("refused"))
    loop = _loop(chain, _Blocks(), push_source_factory=lambda: push)
    shutdown = asyncio.Event()

    task = asyncio.create_task(loop.run(shutdown))
    await _eventually(lambda: loop.state is IngestionState.LIVE_PULL)
    shutdown.set()
    await task

    assert push.closed is True


async def test_push_subscribes_heads_mints_and_one_pair_filter_per_factory(chain: FakeChainSource) -> None:
    push = _PushSource()
    blocks = _Blocks()
    factories = ["0x" + "a" * 40, "0x" + "b" * 40]
    loop = _loop(chain, blocks, push_source_factory=lambda: push, factories=factories)
    shutdown = asyncio.Event()

    task = asyncio.create_task(loop.run(shutdown))
    await _eventually(lambda: loop.state is IngestionState.LIVE_PUSH)
    assert loop.mode == "push"
    assert [f.get("address") for f, _ in push.log_subscriptions] == [None, *factories]

    mints = push.log_subscriptions[0][1]
    mints.publish({"blockNumber": "0x97", "removed": True})
    mints.publish({"blockNumber": "0x98"})
    assert push.heads is not None
    push.heads.publish({"number": "0x99"})
    await _eventually(lambda: blocks.scanned == [153] and len(blocks.logs) == 1)

    shutdown.set()
    await task

    assert blocks.logs[0][1] == "mint"
    assert loop.last_processed_block == 153
    assert push.closed is True
    assert blocks.processed == []


async def test_push_disconnect_falls_back_to_pull_from_last_block(chain: FakeChainSource) -> None:
    push = _PushSource()
    blocks = _Blocks()
    states = _StateLog()
    loop = _loop(chain, blocks, push_source_factory=lambda: push, get_logger=states)
    shutdown = asyncio.Event()
    chain.height = 152

    task = asyncio.create_task(loop.run(shutdown))
    await _eventually(lambda: loop.state is IngestionState.LIVE_PUSH)
    assert push.heads is not None
    push.heads.publish({"number": hex(150)})
    await _eventually(lambda: loop.last_processed_block == 150)

    push.heads.fail(PushDisconnected("socket closed"))
    await _eventually(lambda: blocks.processed == [151, 152])
    shutdown.set()
    await task

    assert push.closed is True
    assert loop.cursor == 152
    assert all(subscription.closed for _, subscription in push.log_subscriptions)
    assert states.transitions == ["live_push", "draining", "live_pull", "draining", "stopped"]


async def test_malformed_push_items_do_not_end_push_mode(chain: FakeChainSource) -> None:
    push = _PushSource()
    blocks = _Blocks()
    loop = _loop(chain, blocks, push_source_factory=lambda: push)
    shutdown = asyncio.Event()

    task = asyncio.create_task(loop.run(shutdown))
    await _eventually(lambda: loop.state is IngestionState.LIVE_PUSH)
    assert push.heads is not None
    push.heads.publish({"number": "0xzz"})
    push.heads.publish({"number": hex(151)})
    await _eventually(lambda: blocks.scanned == [151])

    assert loop.state is IngestionState.LIVE_PUSH
    shutdown.set()
    await task
    assert blocks.processed == []

# -*- coding: utf-8 -*-
"""Unit tests for BlockProcessor."""

from __future__ import annotations

import pytest

from conftest import (
    DEPLOYER,
    FACTORY,
    PAIR,
    RECIPIENT,
    TOKEN,
    TOKEN_B,
    FakeChainSource,
    RecordingNotifications,
    null_logger_factory,
)
from token_scanner.exceptions import AllEndpointsUnavailable, PermanentRpcError, TransientRpcError
from token_scanner.models.candidate import CandidateEvent, CandidateKind
from token_scanner.notifications.stylers import EventNotificationStyler
from token_scanner.persistence.repositories.in_memory import InMemorySeenEntityRepository
from token_scanner.services.detection.token_probe import TokenProbe
from token_scanner.services.ingestion.block_processor import BlockProcessor
from token_scanner.services.ingestion.candidates import PAIR_CREATED_TOPIC, TRANSFER_TOPIC
from token_scanner.services.ingestion.entity_processor import EntityProcessor
from token_scanner.utils.validation import ZERO_TOPIC, address_to_topic

HEIGHT = 200
TIMESTAMP = 1_700_000_123


class _Entities:
    """Records candidates instead of probing them."""

    def __init__(self) -> None:
        self.handled: list[tuple[CandidateEvent, str | None]] = []

    async def handle(self, candidate: CandidateEvent, *, path: str | None = None) -> bool:
        self.handled.append((candidate, path))
        return True


def _pair_log(emitter: str = FACTORY, height: int = HEIGHT) -> dict:
    return {
        "address": emitter,
        "topics": [PAIR_CREATED_TOPIC, address_to_topic(TOKEN), address_to_topic(TOKEN_B)],
        "data": address_to_topic(PAIR) + "0" * 64,
        "blockNumber": hex(height),
        "transactionHash": "0xpairtx",
    }


def _mint_log(height: int = HEIGHT) -> dict:
    return {
        "address": TOKEN_B,
        "topics": [TRANSFER_TOPIC, ZERO_TOPIC, address_to_topic(RECIPIENT)],
        "data": "0x" + (10**18).to_bytes(32, "big").hex(),
        "blockNumber": hex(height),
        "transactionHash": "0xminttx",
    }


def _chain_with_block() -> FakeChainSource:
    chain = FakeChainSource()
    chain.blocks[HEIGHT] = {
        "number": hex(HEIGHT),
        "timestamp": hex(TIMESTAMP),
        "transactions": [
            {"hash": "0xdeploy", "to": None, "from": DEPLOYER},
            {"hash": "0xtransfer", "to": TOKEN_B, "from": DEPLOYER},
        ],
    }
    chain.receipts["0xdeploy"] = {"contractAddress": TOKEN, "transactionHash": "0xdeploy", "from": DEPLOYER}
    chain.logs = [_pair_log(), _mint_log()]
    return chain


def _processor(chain: FakeChainSource, entities: _Entities, **kwargs: object) -> BlockProcessor:
    return BlockProcessor(chain, entities, get_logger=null_logger_factory, **kwargs)  # type: ignore[arg-type]


async def test_process_runs_pair_mint_and_deployment_scans() -> None:
    chain = _chain_with_block()
    entities = _Entities()

    stats = await _processor(chain, entities).process(HEIGHT)

    assert stats.ok is True
    assert stats.candidates == 3
    assert stats.reported == 3
    kinds = [(c.kind, path) for c, path in entities.handled]
    assert kinds == [
        (CandidateKind.PAIR, "pair"),
        (CandidateKind.MINT, "mint"),
        (CandidateKind.DEPLOYMENT, "deployment"),
    ]
    assert all(c.block_timestamp == TIMESTAMP for c, _ in entities.handled)
    deployment = entities.handled[2][0]
    assert deployment.address == TOKEN
    assert deployment.deployer == DEPLOYER
    # only the creation tx needs a receipt
    assert [r for r in chain.requests if r[0] == "get_receipt"] == [("get_receipt", "0xdeploy")]


async def test_failing_scan_does_not_stop_the_others() -> None:
    chain = _chain_with_block()
    chain.errors[f"get_logs:{PAIR_CREATED_TOPIC}"] = PermanentRpcError("log query too large")
    entities = _Entities()

    stats = await _processor(chain, entities).process(HEIGHT)

    assert stats.ok is False
    assert stats.failed_paths == ["pair"]
    assert [c.kind for c, _ in entities.handled] == [CandidateKind.MINT, CandidateKind.DEPLOYMENT]


async def test_missing_block_skips_deployment_scan_only() -> None:
    chain = _chain_with_block()
    chain.errors["get_block"] = TransientRpcError("timeout")
    entities = _Entities()

    stats = await _processor(chain, entities).process(HEIGHT)

    assert stats.failed_paths == ["block"]
    assert [c.kind for c, _ in entities.handled] == [CandidateKind.PAIR, CandidateKind.MINT]
    assert all(c.block_timestamp is None for c, _ in entities.handled)


async def test_all_endpoints_unavailable_is_not_swallowed() -> None:
    chain = _chain_with_block()
    chain.errors[f"get_logs:{TRANSFER_TOPIC}"] = AllEndpointsUnavailable(tried=2)

    with pytest.raises(AllEndpointsUnavailable):
        await _processor(chain, _Entities()).process(HEIGHT)


async def test_receipt_failure_counts_as_item_error() -> None:
    chain = _chain_with_block()
    chain.errors["get_receipt"] = TransientRpcError("timeout")
    entities = _Entities()

    stats = await _processor(chain, entities).process(HEIGHT)

    assert stats.ok is True
    assert stats.item_errors == 1
    assert CandidateKind.DEPLOYMENT not in [c.kind for c, _ in entities.handled]


async def test_malformed_log_counts_as_item_error() -> None:
    chain = _chain_with_block()
    bad = _mint_log()
    bad["data"] = "0xzz"
    chain.logs = [bad]
    entities = _Entities()

    stats = await _processor(chain, entities).process(HEIGHT)

    assert stats.item_errors == 1
    assert stats.ok is True


async def test_pairs_from_unknown_factories_are_ignored() -> None:
    chain = _chain_with_block()
    chain.logs = [_pair_log(emitter=TOKEN), _pair_log()]
    entities = _Entities()

    await _processor(chain, entities, factories=[FACTORY.upper().replace("0X", "0x")]).process(HEIGHT)

    pairs = [c for c, _ in entities.handled if c.kind is CandidateKind.PAIR]
    assert len(pairs) == 1
    assert pairs[0].factory == FACTORY


async def test_scan_deployments_reads_block_only() -> None:
    chain = _chain_with_block()
    entities = _Entities()

    stats = await _processor(chain, entities).scan_deployments(HEIGHT)

    assert stats.candidates == 1
    assert not any(r[0] == "get_logs" for r in chain.requests)


async def test_handle_log_uses_clock_when_log_has_no_timestamp() -> None:
    chain = FakeChainSource()
    entities = _Entities()
    processor = _processor(chain, entities, clock=lambda: 1234.9)

    stats = await processor.handle_log(_mint_log(height=300), path="mint")

    assert stats is not None
    assert stats.block_number == 300
    candidate, path = entities.handled[0]
    assert candidate.kind is CandidateKind.MINT
    assert candidate.block_timestamp == 1234
    assert path == "mint"


async def test_handle_log_applies_factory_filter() -> None:
    entities = _Entities()
    processor = _processor(FakeChainSource(), entities, factories=[FACTORY])

    await processor.handle_log(_pair_log(emitter=TOKEN), path="pair")

    assert entities.handled == []


async def test_undecodable_logs_do_not_hide_later_logs_in_the_block() -> None:
    chain = _chain_with_block()
    address_not_text = _mint_log()
    address_not_text["address"] = 12345
    data_not_text = _mint_log()
    data_not_text["data"] = 5
    chain.logs = [address_not_text, data_not_text, _mint_log()]
    entities = _Entities()

    stats = await _processor(chain, entities).process(HEIGHT)

    assert stats.ok is True
    assert stats.item_errors == 2
    mints = [c for c, _ in entities.handled if c.kind is CandidateKind.MINT]
    assert [c.address for c in mints] == [TOKEN_B]


async def test_pushed_log_with_bad_block_number_is_skipped() -> None:
    entities = _Entities()
    processor = _processor(FakeChainSource(), entities)
    bad = _mint_log()
    bad["blockNumber"] = "0xzz"

    assert await processor.handle_log(bad, path="mint") is None
    assert entities.handled == []


def _scanner(chain: FakeChainSource, repo: InMemorySeenEntityRepository, notifications: RecordingNotifications) -> BlockProcessor:
    probe = TokenProbe(chain, get_logger=null_logger_factory)
    entities = EntityProcessor(repo, probe, notifications, get_logger=null_logger_factory)  # type: ignore[arg-type]
    return BlockProcessor(chain, entities, get_logger=null_logger_factory)


async def test_token_deployed_and_minted_in_one_block_is_reported_once() -> None:
    chain = FakeChainSource()
    chain.add_token(TOKEN, name="Foo", symbol="FOO", decimals=18)
    chain.blocks[HEIGHT] = {
        "number": hex(HEIGHT),
        "timestamp": hex(TIMESTAMP),
        "transactions": [{"hash": "0xdeploy", "to": None, "from": DEPLOYER}],
    }
    chain.receipts["0xdeploy"] = {"contractAddress": TOKEN, "transactionHash": "0xdeploy", "from": DEPLOYER}
    mint = _mint_log()
    mint["address"] = TOKEN
    chain.logs = [mint]
    repo = InMemorySeenEntityRepository()
    notifications = RecordingNotifications()

    stats = await _scanner(chain, repo, notifications).process(HEIGHT)

    assert stats.candidates == 2
    assert stats.reported == 1
    assert chain.requests.count(("get_code", TOKEN)) == 1
    assert len(notifications.messages) == 1
    assert await repo.count() == 1


async def test_mint_log_reaches_one_notification_with_scaled_amount() -> None:
    chain = FakeChainSource()
    chain.add_token(TOKEN, name="Foo", symbol="FOO", decimals=18)
    chain.blocks[HEIGHT] = {"number": hex(HEIGHT), "timestamp": hex(TIMESTAMP), "transactions": []}
    mint = _mint_log()
    mint["address"] = TOKEN
    mint["data"] = "0x" + (1500000000000000000).to_bytes(32, "big").hex()
    chain.logs = [mint]
    notifications = RecordingNotifications()

    await _scanner(chain, InMemorySeenEntityRepository(), notifications).process(HEIGHT)

    assert len(notifications.messages) == 1
    message = notifications.messages[0]
    assert message.event_type == "token_minted"
    text = EventNotificationStyler(clock=lambda: TIMESTAMP + 5).render(message)
    assert "<b>Amount:</b> 1.5 FOO" in text
    assert "<b>Name:</b> Foo (FOO)" in text

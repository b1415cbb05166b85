"""Candidate extraction: turn raw logs and receipts into CandidateEvent objects."""

from __future__ import annotations

import functools
from collections.abc import Callable, Iterable

from token_scanner.chain.schema import LogFilter, LogSchema, ReceiptSchema, TransactionSchema
from token_scanner.exceptions import MalformedLogError
from token_scanner.models.candidate import CandidateEvent, CandidateKind
from token_scanner.utils.validation import (
    ZERO_TOPIC,
    is_hex_address,
    normalize_address,
    parse_hex_int,
    topic_to_address,
)

# keccak256("Transfer(address,address,uint256)")
TRANSFER_TOPIC = "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"
# keccak256("PairCreated(address,address,address,uint256)")
PAIR_CREATED_TOPIC = "0x0d3648bd0f6ba80134a33ba9275ac585d9d315f0ad8355cddefde31afa28d0e9"


def mint_filter(height: int | None = None) -> LogFilter:
    """Transfer logs whose `from` is the zero address."""
    log_filter: LogFilter = {"topics": [TRANSFER_TOPIC, ZERO_TOPIC]}
    if height is not None:
        log_filter["fromBlock"] = hex(height)
        log_filter["toBlock"] = hex(height)
    return log_filter


def pair_filter(height: int | None = None, factory: str | None = None) -> LogFilter:
    """PairCreated logs, optionally restricted to one factory."""
    log_filter: LogFilter = {"topics": [PAIR_CREATED_TOPIC]}
    if factory:
        log_filter["address"] = normalize_address(factory)
    if height is not None:
        log_filter["fromBlock"] = hex(height)
        log_filter["toBlock"] = hex(height)
    return log_filter


def _topics(log: LogSchema) -> list[str]:
    topics = log.get("topics")
    if not isinstance(topics, list) or not all(isinstance(t, str) for t in topics):
        raise MalformedLogError("log topics are missing or not hex strings")
    return topics


def _block_number(log: LogSchema, fallback: int | None) -> int:
    raw = log.get("blockNumber")
    if raw is None:
        if fallback is None:
            raise MalformedLogError("log has no blockNumber")
        return fallback
    try:
        return parse_hex_int(raw)
    except (TypeError, ValueError) as e:
        raise MalformedLogError(f"bad blockNumber {raw!r}") from e


def _word_address(data: str, index: int) -> str:
    s = (data or "").lower()
    if s.startswith("0x"):
        s = s[2:]
    word = s[index * 64 : (index + 1) * 64]
    return topic_to_address(word)


def _decoding[**P](kind: str) -> Callable[[Callable[P, CandidateEvent]], Callable[P, CandidateEvent]]:
    """Re-raise any decode failure of a log parser as MalformedLogError."""

    def decorator(parse: Callable[P, CandidateEvent]) -> Callable[P, CandidateEvent]:
        @functools.wraps(parse)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> CandidateEvent:
            try:
                return parse(*args, **kwargs)
            except MalformedLogError:
                raise
            except (AttributeError, IndexError, TypeError, ValueError) as e:
                raise MalformedLogError(f"{kind} decode failed: {type(e).__name__}: {e}") from e

        return wrapper

    return decorator


@_decoding("PairCreated")
def parse_pair_created(
    log: LogSchema,
    *,
    block_number: int | None = None,
    block_timestamp: int | None = None,
) -> CandidateEvent:
    """Decode a PairCreated log into a PAIR candidate.

    token0/token1 are indexed (topics[1], topics[2]). The pair address is
    topics[3] when indexed, otherwise the first data word.

    Raises:
        MalformedLogError: Any field that cannot be decoded.
    """
    topics = _topics(log)
    if len(topics) < 3 or topics[0].lower() != PAIR_CREATED_TOPIC:
        raise MalformedLogError(f"not a PairCreated log: {len(topics)} topics")
    try:
        token0 = topic_to_address(topics[1])
        token1 = topic_to_address(topics[2])
        if len(topics) >= 4:
            pair = topic_to_address(topics[3])
        else:
            pair = _word_address(log.get("data", ""), 0)
    except (TypeError, ValueError) as e:
        raise MalformedLogError(f"PairCreated decode failed: {e}") from e

    return CandidateEvent(
        kind=CandidateKind.PAIR,
        address=pair,
        block_number=_block_number(log, block_number),
        tx_hash=log.get("transactionHash"),
        block_timestamp=block_timestamp,
        token0=token0,
        token1=token1,
        factory=normalize_address(log.get("address")) or None,
    )


@_decoding("Transfer")
def parse_mint(
    log: LogSchema,
    *,
    block_number: int | None = None,
    block_timestamp: int | None = None,
) -> CandidateEvent:
    """Decode a zero-address Transfer log into a MINT candidate.

    The emitting contract is the token; topics[2] is the recipient and the
    data word is the amount (topics[3] for token standards that index it).

    Raises:
        MalformedLogError: Not a mint, or any field that cannot be decoded.
    """
    topics = _topics(log)
    if len(topics) < 3 or topics[0].lower() != TRANSFER_TOPIC:
        raise MalformedLogError(f"not a Transfer log: {len(topics)} topics")
    if topics[1].lower() != ZERO_TOPIC:
        raise MalformedLogError("Transfer is not from the zero address")
    token = normalize_address(log.get("address"))
    if not is_hex_address(token):
        raise MalformedLogError(f"log address is not an address: {token!r}")
    try:
        recipient = topic_to_address(topics[2])
        data = log.get("data") or "0x"
        if data not in ("0x", "0X", ""):
            amount = parse_hex_int(data[:66])
        elif len(topics) >= 4:
            amount = parse_hex_int(topics[3])
        else:
            amount = 0
    except (TypeError, ValueError) as e:
        raise MalformedLogError(f"Transfer decode failed: {e}") from e

    return CandidateEvent(
        kind=CandidateKind.MINT,
        address=token,
        block_number=_block_number(log, block_number),
        tx_hash=log.get("transactionHash"),
        block_timestamp=block_timestamp,
        recipient=recipient,
        amount=amount,
    )


def is_creation_tx(tx: TransactionSchema | str) -> bool:
    """True when tx may create a contract. Bare hashes cannot be ruled out."""
    if isinstance(tx, str):
        return True
    return tx.get("to") is None


def tx_hash_of(tx: TransactionSchema | str) -> str | None:
    if isinstance(tx, str):
        return tx or None
    return tx.get("hash") or None


def parse_deployment(
    receipt: ReceiptSchema,
    *,
    block_number: int,
    block_timestamp: int | None = None,
) -> CandidateEvent | None:
    """Return a DEPLOYMENT candidate when the receipt created a contract, else None."""
    contract = normalize_address(receipt.get("contractAddress"))
    if not contract:
        return None
    return CandidateEvent(
        kind=CandidateKind.DEPLOYMENT,
        address=contract,
        block_number=block_number,
        tx_hash=receipt.get("transactionHash"),
        block_timestamp=block_timestamp,
        deployer=normalize_address(receipt.get("from")) or None,  # type: ignore[typeddict-item]
    )


def filter_factories(logs: Iterable[LogSchema], factories: Iterable[str]) -> list[LogSchema]:
    """Keep logs emitted by one of factories; all logs when factories is empty."""
    allowed = {normalize_address(f) for f in factories if f}
    if not allowed:
        return list(logs)
    return [log for log in logs if normalize_address(log.get("address")) in allowed]

"""JSON-RPC chain object types. Keys match node responses (camelCase)."""

from __future__ import annotations

from typing import TypedDict


class TransactionSchema(TypedDict, total=False):
    """Transaction object inside eth_getBlockByNumber(..., true)."""

    hash: str
    blockNumber: str
    blockHash: str
    transactionIndex: str
    to: str | None
    value: str
    input: str
    nonce: str
    gas: str
    gasPrice: str
    # "from" is a keyword; read it via tx.get("from")


class BlockSchema(TypedDict, total=False):
    """eth_getBlockByNumber result or newHeads notification."""

    number: str
    hash: str
    parentHash: str
    timestamp: str
    miner: str
    gasUsed: str
    gasLimit: str
    transactions: list[TransactionSchema] | list[str]


class LogSchema(TypedDict, total=False):
    """eth_getLogs item or logs subscription notification."""

    address: str
    topics: list[str]
    data: str
    blockNumber: str
    blockHash: str
    transactionHash: str
    transactionIndex: str
    logIndex: str
    removed: bool


class ReceiptSchema(TypedDict, total=False):
    """eth_getTransactionReceipt result."""

    transactionHash: str
    blockNumber: str
    contractAddress: str | None
    to: str | None
    status: str
    logs: list[LogSchema]
    gasUsed: str


class LogFilter(TypedDict, total=False):
    """eth_getLogs / eth_subscribe('logs') filter.

    address may be one address or a list; topics entries may be None (wildcard).
    """

    address: str | list[str]
    topics: list[str | list[str] | None]
    fromBlock: str
    toBlock: str

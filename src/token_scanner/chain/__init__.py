"""Chain access: pull (HTTP) and push (WebSocket) sources."""

from token_scanner.chain.http_source import HttpChainSource
from token_scanner.chain.schema import (
    BlockSchema,
    LogFilter,
    LogSchema,
    ReceiptSchema,
    TransactionSchema,
)
from token_scanner.chain.source import IChainSource
from token_scanner.chain.subscription import Subscription
from token_scanner.chain.ws_source import WebSocketChainSource

__all__ = [
    "BlockSchema",
    "HttpChainSource",
    "IChainSource",
    "LogFilter",
    "LogSchema",
    "ReceiptSchema",
    "Subscription",
    "TransactionSchema",
    "WebSocketChainSource",
]

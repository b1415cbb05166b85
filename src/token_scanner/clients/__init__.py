"""HTTP and JSON-RPC clients."""

from token_scanner.clients.http import AsyncHttpClient
from token_scanner.clients.rpc_transport import (
    HttpRpcTransport,
    RpcTransport,
    classify_rpc_error,
    unwrap_rpc_response,
)

__all__ = [
    "AsyncHttpClient",
    "HttpRpcTransport",
    "RpcTransport",
    "classify_rpc_error",
    "unwrap_rpc_response",
]

"""Exceptions subpackage."""

from token_scanner.exceptions.exceptions import (
    AllEndpointsUnavailable,
    MalformedLogError,
    MissingRequiredConfigError,
    PermanentRpcError,
    PushDisconnected,
    RateLimitError,
    RpcError,
    ScannerError,
    TransientRpcError,
)
from token_scanner.exceptions.subscription_exceptions import (
    SubscriptionClosed,
    SubscriptionError,
)

__all__ = [
    "AllEndpointsUnavailable",
    "MalformedLogError",
    "MissingRequiredConfigError",
    "PermanentRpcError",
    "PushDisconnected",
    "RateLimitError",
    "RpcError",
    "ScannerError",
    "SubscriptionClosed",
    "SubscriptionError",
    "TransientRpcError",
]

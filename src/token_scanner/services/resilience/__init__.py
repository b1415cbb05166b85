"""Retry and endpoint failover."""

from token_scanner.services.resilience.failover import FailoverManager, TransportFactory
from token_scanner.services.resilience.retry_policy import (
    ErrorKind,
    RetryPolicy,
    classify_error,
    is_retryable,
)

__all__ = [
    "ErrorKind",
    "FailoverManager",
    "RetryPolicy",
    "TransportFactory",
    "classify_error",
    "is_retryable",
]

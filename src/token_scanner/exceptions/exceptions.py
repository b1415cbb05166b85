"""Custom exceptions for RPC access, failover and ingestion."""

from __future__ import annotations


class ScannerError(Exception):
    """Base exception for scanner-related errors."""

    pass


class MissingRequiredConfigError(ScannerError):
    """Raised when a required configuration value is missing."""

    pass


class RpcError(ScannerError):
    """Raised when a JSON-RPC request fails."""

    def __init__(
        self,
        message: str,
        *,
        url: str | None = None,
        code: int | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.url = url
        self.code = code
        self.cause = cause


class TransientRpcError(RpcError):
    """Timeouts, connection resets and 5xx responses. Worth retrying."""

    pass


class RateLimitError(RpcError):
    """Raised when the endpoint answers HTTP 429 or a JSON-RPC rate-limit error."""

    def __init__(
        self,
        message: str = "Rate limit exceeded (429)",
        *,
        url: str | None = None,
        code: int | None = 429,
        retry_after: float | None = None,
    ) -> None:
        super().__init__(message, url=url, code=code)
        self.retry_after = retry_after


class PermanentRpcError(RpcError):
    """Malformed call, unsupported method or execution revert. Never retried."""

    pass


class AllEndpointsUnavailable(ScannerError):
    """Raised when every configured endpoint failed within one failover cycle."""

    def __init__(self, message: str = "All endpoints exhausted", *, tried: int = 0) -> None:
        super().__init__(message)
        self.tried = tried


class PushDisconnected(ScannerError):
    """Raised when the push (WebSocket) transport closed or errored."""

    pass


class MalformedLogError(ScannerError):
    """Raised when a log entry cannot be decoded into a candidate."""

    pass

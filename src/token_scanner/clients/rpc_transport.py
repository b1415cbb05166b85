"""JSON-RPC transports: one handle per active endpoint session."""

from __future__ import annotations

import itertools
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, cast

import structlog

from token_scanner.exceptions import (
    PermanentRpcError,
    RateLimitError,
    RpcError,
    TransientRpcError,
)

if TYPE_CHECKING:
    from token_scanner.clients.http import AsyncHttpClient

# JSON-RPC error codes that mean "slow down"
_RATE_LIMIT_CODES = frozenset({-32005, 429})
_RATE_LIMIT_MARKERS = ("rate limit", "too many requests", "request limit", "limit exceeded")
# Server-side hiccups (node overloaded, upstream timeout)
_TRANSIENT_CODES = frozenset({-32603, -32002})
_TRANSIENT_MARKERS = ("timeout", "timed out", "temporarily", "try again", "unavailable")


def classify_rpc_error(error: Any, *, url: str | None = None) -> RpcError:
    """Map a JSON-RPC error object to the scanner's error taxonomy."""
    if isinstance(error, dict):
        err = cast(dict[str, Any], error)
        code_raw = err.get("code")
        message = str(err.get("message", err))
    else:
        code_raw = None
        message = str(error)
    code = code_raw if isinstance(code_raw, int) else None
    lowered = message.lower()

    if code in _RATE_LIMIT_CODES or any(m in lowered for m in _RATE_LIMIT_MARKERS):
        return RateLimitError(f"RPC rate limited: {message}", url=url, code=code)
    if code in _TRANSIENT_CODES or any(m in lowered for m in _TRANSIENT_MARKERS):
        return TransientRpcError(f"RPC transient error: {message}", url=url, code=code)
    return PermanentRpcError(f"RPC error: {message}", url=url, code=code)


def unwrap_rpc_response(response: Any, *, url: str | None = None) -> Any:
    """Return the 'result' of a JSON-RPC response or raise the classified error."""
    if not isinstance(response, dict):
        raise TransientRpcError(
            f"Unexpected RPC response type: {type(response).__name__}", url=url
        )
    resp = cast(dict[str, Any], response)
    if resp.get("error") is not None:
        raise classify_rpc_error(resp["error"], url=url)
    return resp.get("result")


class RpcTransport(ABC):
    """A live handle to one endpoint that can issue JSON-RPC requests."""

    @property
    @abstractmethod
    def url(self) -> str:
        """Endpoint URL served by this handle."""
        ...

    @abstractmethod
    async def request(self, method: str, params: list[Any] | None = None) -> Any:
        """Issue one JSON-RPC request and return its result.

        Raises:
            RateLimitError, TransientRpcError, PermanentRpcError.
        """
        ...

    @abstractmethod
    async def aclose(self) -> None:
        """Tear down the handle. Further requests fail."""
        ...


class HttpRpcTransport(RpcTransport):
    """Stateless JSON-RPC over HTTP POST, sharing the application's HTTP session."""

    def __init__(
        self,
        url: str,
        http_client: AsyncHttpClient,
        *,
        get_logger: Callable[[str], Any] = structlog.get_logger,
        logger_name: str | None = None,
    ) -> None:
        self._url = url.rstrip("/")
        self._http = http_client
        self._ids = itertools.count(1)
        self._closed = False
        self._logger = get_logger(logger_name or self.__class__.__name__)

    @property
    def url(self) -> str:
        return self._url

    async def request(self, method: str, params: list[Any] | None = None) -> Any:
        if self._closed:
            raise TransientRpcError(f"Transport for {self._url} is closed", url=self._url)
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params or [],
        }
        response = await self._http.post_json(self._url, json=payload)
        return unwrap_rpc_response(response, url=self._url)

    async def aclose(self) -> None:
        self._closed = True

# -*- coding: utf-8 -*-
"""Unit tests for JSON-RPC error classification and the HTTP transport."""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any

import aiohttp
import pytest

from conftest import null_logger_factory
from token_scanner.clients.http import AsyncHttpClient
from token_scanner.clients.rpc_transport import (
    HttpRpcTransport,
    classify_rpc_error,
    unwrap_rpc_response,
)
from token_scanner.exceptions import PermanentRpcError, RateLimitError, TransientRpcError

URL = "https://rpc.example"


class _Response:
    def __init__(self, status: int, body: Any = None, headers: dict[str, str] | None = None) -> None:
        self.status = status
        self._body = body
        self.headers = headers or {}

    async def json(self, content_type: Any = None) -> Any:
        if isinstance(self._body, Exception):
            raise self._body
        return self._body

    async def __aenter__(self) -> _Response:
        return self

    async def __aexit__(self, *args: Any) -> None:
        return None


class _Session:
    """Minimal aiohttp.ClientSession stand-in recording POST bodies."""

    def __init__(self, *responses: Any) -> None:
        self.responses = list(responses)
        self.posted: list[dict[str, Any]] = []
        self.closed = False

    def post(self, url: str, *, json: dict[str, Any]) -> Any:
        self.posted.append(json)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    async def close(self) -> None:
        self.closed = True


def _client(session: _Session) -> AsyncHttpClient:
    settings = SimpleNamespace(chain=SimpleNamespace(request_timeout_seconds=5.0))
    return AsyncHttpClient(settings, session=session, get_logger=null_logger_factory)  # type: ignore[arg-type]


@pytest.mark.parametrize(
    ("error", "expected"),
    [
        ({"code": -32005, "message": "limit"}, RateLimitError),
        ({"code": -32000, "message": "Too Many Requests"}, RateLimitError),
        ({"code": -32000, "message": "daily request limit exceeded"}, RateLimitError),
        ({"code": -32000, "message": "capacity limit exceeded"}, RateLimitError),
        ({"code": -32000, "message": "log response size exceeded"}, PermanentRpcError),
        ({"code": -32000, "message": "block range exceeded"}, PermanentRpcError),
        ({"code": -32603, "message": "internal error"}, TransientRpcError),
        ({"code": -32000, "message": "upstream timeout"}, TransientRpcError),
        ({"code": -32602, "message": "invalid params"}, PermanentRpcError),
        ({"code": 3, "message": "execution reverted"}, PermanentRpcError),
        ("something odd", PermanentRpcError),
    ],
)
def test_classify_rpc_error(error: Any, expected: type[Exception]) -> None:
    classified = classify_rpc_error(error, url=URL)

    assert type(classified) is expected
    assert classified.url == URL


def test_unwrap_returns_result_or_raises() -> None:
    assert unwrap_rpc_response({"jsonrpc": "2.0", "id": 1, "result": "0x10"}) == "0x10"
    assert unwrap_rpc_response({"jsonrpc": "2.0", "id": 1, "result": None}) is None
    with pytest.raises(PermanentRpcError):
        unwrap_rpc_response({"id": 1, "error": {"code": -32601, "message": "method not found"}})
    with pytest.raises(TransientRpcError):
        unwrap_rpc_response(["not", "a", "dict"])


async def test_transport_posts_jsonrpc_envelope_with_increasing_ids() -> None:
    session = _Session(_Response(200, {"result": "0x1"}), _Response(200, {"result": "0x2"}))
    transport = HttpRpcTransport(URL + "/", _client(session), get_logger=null_logger_factory)

    assert await transport.request("eth_blockNumber") == "0x1"
    assert await transport.request("eth_getCode", ["0xabc", "latest"]) == "0x2"

    assert transport.url == URL
    assert session.posted[0] == {"jsonrpc": "2.0", "id": 1, "method": "eth_blockNumber", "params": []}
    assert session.posted[1]["id"] == 2
    assert session.posted[1]["params"] == ["0xabc", "latest"]


async def test_transport_rejects_requests_after_close() -> None:
    transport = HttpRpcTransport(URL, _client(_Session()), get_logger=null_logger_factory)
    await transport.aclose()

    with pytest.raises(TransientRpcError):
        await transport.request("eth_blockNumber")


async def test_http_status_classification() -> None:
    session = _Session(
        _Response(429, headers={"Retry-After": "2"}),
        _Response(503),
        _Response(404),
        aiohttp.ClientConnectionError("refused"),
        _Response(200, ValueError("not json")),
    )
    client = _client(session)

    with pytest.raises(RateLimitError) as rate_limited:
        await client.post_json(URL, json={})
    assert rate_limited.value.retry_after == 2.0
    with pytest.raises(TransientRpcError):
        await client.post_json(URL, json={})
    with pytest.raises(PermanentRpcError):
        await client.post_json(URL, json={})
    with pytest.raises(TransientRpcError):
        await client.post_json(URL, json={})
    with pytest.raises(TransientRpcError):
        await client.post_json(URL, json={})


async def test_injected_session_is_not_closed_by_client() -> None:
    session = _Session()
    client = _client(session)

    await client.aclose()

    assert session.closed is False

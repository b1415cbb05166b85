# -*- coding: utf-8 -*-
"""Push chain source: eth_subscribe over an aiohttp WebSocket."""

from __future__ import annotations

import asyncio
import itertools
import json
from collections.abc import Awaitable, Callable
from typing import Any, Protocol, cast

import aiohttp
import structlog

from token_scanner.chain.schema import BlockSchema, LogFilter, LogSchema, ReceiptSchema
from token_scanner.chain.source import IChainSource
from token_scanner.chain.subscription import Subscription
from token_scanner.clients.rpc_transport import classify_rpc_error
from token_scanner.exceptions import PushDisconnected, SubscriptionClosed
from token_scanner.models.endpoint import Endpoint
from token_scanner.utils.validation import parse_hex_int

# early notifications kept per unknown subscription id while an eth_subscribe is in flight
_MAX_EARLY_NOTIFICATIONS = 256


class WebSocketLike(Protocol):
    """The subset of aiohttp.ClientWebSocketResponse used here."""

    async def send_json(self, data: Any) -> None: ...

    async def close(self) -> Any: ...

    def __aiter__(self) -> Any: ...


WsConnect = Callable[[str], Awaitable[WebSocketLike]]


class WebSocketChainSource(IChainSource):
    """IChainSource fed by a single WebSocket connection.

    Subscriptions are routed by the id returned from eth_subscribe. When the
    socket closes or errors, every open subscription and every pending
    request fails with PushDisconnected; there is no in-place reconnection.
    Block, log, receipt, code and call reads go to the pull source (reads)
    so they keep retry and failover.
    """

    def __init__(
        self,
        endpoint: Endpoint,
        reads: IChainSource,
        *,
        connect_timeout: float = 10.0,
        ws_connect: WsConnect | None = None,
        get_logger: Callable[[str], Any] = structlog.get_logger,
        logger_name: str | None = None,
    ) -> None:
        """Initialize the source (does not connect).

        Args:
            endpoint: Push endpoint (ws:// or wss://).
            reads: Pull source used for every non-subscription read.
            connect_timeout: Seconds allowed for the WebSocket handshake.
            ws_connect: Optional connector (url -> websocket). Defaults to an
                aiohttp.ClientSession owned by this source.
            get_logger: Logger factory (injected) with default of structlog.get_logger.
            logger_name: Optional logger name (defaults to class name).
        """
        self._endpoint = endpoint
        self._reads = reads
        self._connect_timeout = connect_timeout
        self._ws_connect = ws_connect
        self._session: aiohttp.ClientSession | None = None
        self._ws: WebSocketLike | None = None
        self._reader: asyncio.Task[None] | None = None
        self._ids = itertools.count(1)
        self._pending: dict[int, asyncio.Future[Any]] = {}
        self._subscriptions: dict[str, Subscription[Any]] = {}
        self._orphans: dict[str, list[Any]] = {}
        self._subscribes_in_flight = 0
        self._disconnected: PushDisconnected | None = None
        self._closing = False
        self._logger = get_logger(logger_name or self.__class__.__name__)

    @property
    def endpoint(self) -> Endpoint:
        return self._endpoint

    @property
    def connected(self) -> bool:
        return self._ws is not None and self._disconnected is None

    async def _open(self, url: str) -> WebSocketLike:
        if self._ws_connect is not None:
            return await self._ws_connect(url)
        self._session = aiohttp.ClientSession()
        return cast(WebSocketLike, await self._session.ws_connect(url, heartbeat=30.0))

    async def connect(self) -> None:
        """Open the socket and start the reader task.

        Raises:
            PushDisconnected: Handshake failed or timed out.
        """
        try:
            async with asyncio.timeout(self._connect_timeout):
                self._ws = await self._open(self._endpoint.url)
        except (TimeoutError, aiohttp.ClientError, OSError) as e:
            await self._close_session()
            raise PushDisconnected(
                f"WebSocket connect failed: {self._endpoint.url}: {type(e).__name__}: {e}"
            ) from e
        self._reader = asyncio.create_task(self._read_loop(), name="ws_reader")
        self._logger.info("ws_connected", endpoint_url=self._endpoint.url)

    async def _read_loop(self) -> None:
        ws = self._ws
        assert ws is not None
        reason = "WebSocket closed"
        try:
            async for msg in ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    self._dispatch(json.loads(msg.data))
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    reason = f"WebSocket error: {msg.data}"
                    break
                elif msg.type in (
                    aiohttp.WSMsgType.CLOSE,
                    aiohttp.WSMsgType.CLOSING,
                    aiohttp.WSMsgType.CLOSED,
                ):
                    break
        except asyncio.CancelledError:
            reason = "WebSocket reader cancelled"
        except Exception as e:
            reason = f"WebSocket reader failed: {type(e).__name__}: {e}"
        self._disconnect(reason)

    def _dispatch(self, message: Any) -> None:
        if not isinstance(message, dict):
            return
        msg = cast(dict[str, Any], message)
        if msg.get("method") == "eth_subscription":
            params = cast(dict[str, Any], msg.get("params") or {})
            sub_id = str(params.get("subscription"))
            item = params.get("result")
            subscription = self._subscriptions.get(sub_id)
            if subscription is None:
                # may have raced ahead of an eth_subscribe response; anything else is stale
                early = self._orphans.setdefault(sub_id, []) if self._subscribes_in_flight else None
                if early is None or len(early) >= _MAX_EARLY_NOTIFICATIONS:
                    self._logger.debug("ws_notification_dropped", ws_subscription_id=sub_id)
                    return
                early.append(item)
                return
            try:
                subscription.publish(item)
            except SubscriptionClosed:
                self._subscriptions.pop(sub_id, None)
            return

        request_id = msg.get("id")
        future = self._pending.get(request_id) if isinstance(request_id, int) else None
        if future is None or future.done():
            return
        if msg.get("error") is not None:
            future.set_exception(classify_rpc_error(msg["error"], url=self._endpoint.url))
        else:
            future.set_result(msg.get("result"))

    def _disconnect(self, reason: str) -> None:
        if self._disconnected is not None:
            return
        self._disconnected = PushDisconnected(reason)
        if not self._closing:
            self._logger.warning(
                "ws_disconnected",
                endpoint_url=self._endpoint.url,
                ws_disconnect_reason=reason,
                ws_open_subscriptions=len(self._subscriptions),
            )
        for subscription in self._subscriptions.values():
            subscription.fail(PushDisconnected(reason))
        self._subscriptions.clear()
        self._orphans.clear()
        for future in self._pending.values():
            if not future.done():
                future.set_exception(PushDisconnected(reason))
        self._pending.clear()

    async def _send(self, method: str, params: list[Any]) -> Any:
        if self._ws is None:
            raise PushDisconnected("WebSocket is not connected")
        if self._disconnected is not None:
            raise PushDisconnected(str(self._disconnected))
        request_id = next(self._ids)
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        try:
            await self._ws.send_json(
                {"jsonrpc": "2.0", "id": request_id, "method": method, "params": params}
            )
            return await future
        except (aiohttp.ClientError, ConnectionError, RuntimeError) as e:
            raise PushDisconnected(f"WebSocket send failed: {type(e).__name__}: {e}") from e
        finally:
            self._pending.pop(request_id, None)

    async def _subscribe[T](self, name: str, params: list[Any]) -> Subscription[T]:
        sub_id = ""
        self._subscribes_in_flight += 1
        try:
            sub_id = str(await self._send("eth_subscribe", params))
        finally:
            self._subscribes_in_flight -= 1
            early = self._orphans.pop(sub_id, []) if sub_id else []
            if not self._subscribes_in_flight:
                self._orphans.clear()

        async def unsubscribe() -> None:
            self._subscriptions.pop(sub_id, None)
            if self._disconnected is None and not self._closing:
                try:
                    await self._send("eth_unsubscribe", [sub_id])
                except Exception as e:
                    self._logger.debug(
                        "ws_unsubscribe_failed", ws_subscription_id=sub_id, error_type=type(e).__name__
                    )

        subscription: Subscription[T] = Subscription(name, on_close=unsubscribe)
        if self._disconnected is not None:
            subscription.fail(PushDisconnected(str(self._disconnected)))
            return subscription
        self._subscriptions[sub_id] = subscription
        for item in early:
            subscription.publish(item)
        self._logger.debug("ws_subscribed", ws_subscription=name, ws_subscription_id=sub_id)
        return subscription

    async def current_height(self) -> int:
        """Latest block number, asked over the socket (doubles as a liveness check)."""
        return parse_hex_int(await self._send("eth_blockNumber", []))

    async def subscribe_blocks(self) -> Subscription[BlockSchema]:
        return await self._subscribe("new_heads", ["newHeads"])

    async def subscribe_logs(self, log_filter: LogFilter) -> Subscription[LogSchema]:
        return await self._subscribe("logs", ["logs", dict(log_filter)])

    async def get_block(self, height: int, include_transactions: bool = False) -> BlockSchema | None:
        return await self._reads.get_block(height, include_transactions)

    async def get_logs(self, log_filter: LogFilter) -> list[LogSchema]:
        return await self._reads.get_logs(log_filter)

    async def get_receipt(self, tx_hash: str) -> ReceiptSchema | None:
        return await self._reads.get_receipt(tx_hash)

    async def get_code(self, address: str) -> str:
        return await self._reads.get_code(address)

    async def get_balance(self, address: str) -> int:
        return await self._reads.get_balance(address)

    async def call(self, to: str, data: str) -> str:
        return await self._reads.call(to, data)

    async def _close_session(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def aclose(self) -> None:
        """Close subscriptions, the socket and the owned HTTP session."""
        self._closing = True
        for subscription in list(self._subscriptions.values()):
            await subscription.close()
        self._subscriptions.clear()
        if self._ws is not None:
            try:
                await self._ws.close()
            except Exception as e:
                self._logger.debug("ws_close_failed", error_type=type(e).__name__)
        if self._reader is not None and not self._reader.done():
            self._reader.cancel()
            await asyncio.gather(self._reader, return_exceptions=True)
        self._disconnect("WebSocket closed by client")
        await self._close_session()
        self._logger.info("ws_closed", endpoint_url=self._endpoint.url)

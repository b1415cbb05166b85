# -*- coding: utf-8 -*-
"""Failover manager: owns the active RPC session and rotates across endpoints."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

import structlog
from structlog.contextvars import bound_contextvars

from token_scanner.clients.rpc_transport import RpcTransport
from token_scanner.exceptions import AllEndpointsUnavailable
from token_scanner.models.endpoint import Endpoint
from token_scanner.services.resilience.retry_policy import RetryPolicy, is_retryable
from token_scanner.utils.validation import parse_hex_int

TransportFactory = Callable[[Endpoint], RpcTransport]


class FailoverManager:
    """Ordered endpoint pool with exactly one active session.

    The session (endpoint + transport handle) is built lazily from the first
    endpoint. rotate() moves to the next endpoint that answers eth_blockNumber;
    with_fallback() wraps one logical call in the retry policy and rotates
    when retries are exhausted on a retryable error.
    """

    def __init__(
        self,
        endpoints: Sequence[Endpoint],
        transport_factory: TransportFactory,
        retry_policy: RetryPolicy,
        *,
        get_logger: Callable[[str], Any] = structlog.get_logger,
        logger_name: str | None = None,
    ) -> None:
        """Initialize the manager.

        Args:
            endpoints: Configured endpoints in priority order (non-empty).
            transport_factory: Builds a transport handle for an endpoint.
            retry_policy: Policy applied to each call in with_fallback().
            get_logger: Logger factory (injected) with default of structlog.get_logger.
            logger_name: Optional logger name (defaults to class name).
        """
        if not endpoints:
            raise ValueError("FailoverManager needs at least one endpoint")
        self._endpoints: tuple[Endpoint, ...] = tuple(endpoints)
        self._factory = transport_factory
        self._retry = retry_policy
        self._index = 0
        self._transport: RpcTransport | None = None
        self._generation = 0
        self._lock = asyncio.Lock()
        self._logger = get_logger(logger_name or self.__class__.__name__)

    @property
    def endpoints(self) -> tuple[Endpoint, ...]:
        return self._endpoints

    @property
    def active_endpoint(self) -> Endpoint:
        return self._endpoints[self._index]

    @property
    def generation(self) -> int:
        """Incremented on every switch; lets callers detect a concurrent rotation."""
        return self._generation

    def current(self) -> RpcTransport:
        """Return the active transport handle, building it on first use."""
        if self._transport is None:
            self._transport = self._factory(self.active_endpoint)
        return self._transport

    async def _replace_transport(self) -> RpcTransport:
        old = self._transport
        self._transport = None
        if old is not None:
            try:
                await old.aclose()
            except Exception as e:
                self._logger.debug(
                    "failover_transport_close_failed",
                    endpoint_url=old.url,
                    error_type=type(e).__name__,
                )
        self._generation += 1
        return self.current()

    async def rotate(self) -> Endpoint:
        """Switch to the next endpoint that answers a single eth_blockNumber.

        Tries at most len(endpoints) endpoints, starting after the active one
        and wrapping around.

        Returns:
            The newly active endpoint.

        Raises:
            AllEndpointsUnavailable: No endpoint answered the probe.
        """
        async with self._lock:
            return await self._rotate_locked()

    async def _rotate_locked(self) -> Endpoint:
        total = len(self._endpoints)
        previous = self.active_endpoint.url
        for _ in range(total):
            self._index = (self._index + 1) % total
            transport = await self._replace_transport()
            endpoint = self.active_endpoint
            try:
                height = parse_hex_int(await transport.request("eth_blockNumber", []))
            except Exception as e:
                self._logger.warning(
                    "failover_probe_failed",
                    endpoint_url=endpoint.url,
                    error_type=type(e).__name__,
                    error_message=str(e),
                )
                continue
            endpoint.touch()
            self._logger.info(
                "failover_endpoint_switched",
                endpoint_url=endpoint.url,
                endpoint_previous_url=previous,
                block_number=height,
            )
            return endpoint
        self._logger.error("failover_all_endpoints_unavailable", endpoint_count=total)
        raise AllEndpointsUnavailable(tried=total)

    async def _rotate_from(self, generation: int) -> None:
        async with self._lock:
            if self._generation != generation:
                # another caller already switched
                return
            await self._rotate_locked()

    async def with_fallback[T](self, op: Callable[[RpcTransport], Awaitable[T]]) -> T:
        """Run op against the active transport with retry, rotating on exhausted retries.

        Non-retryable errors propagate immediately without rotation. After
        every endpoint has been tried once in this call, AllEndpointsUnavailable
        is raised chained to the last error.
        """
        tried = 0
        while True:
            generation = self._generation
            endpoint = self.active_endpoint
            try:
                with bound_contextvars(endpoint_url=endpoint.url):
                    result = await self._retry.run(lambda: op(self.current()))
            except AllEndpointsUnavailable:
                raise
            except Exception as e:
                if not is_retryable(e):
                    raise
                tried += 1
                if tried >= len(self._endpoints):
                    raise AllEndpointsUnavailable(tried=tried) from e
                self._logger.warning(
                    "failover_retries_exhausted",
                    endpoint_url=endpoint.url,
                    error_type=type(e).__name__,
                    error_message=str(e),
                )
                await self._rotate_from(generation)
                continue
            endpoint.touch()
            return result

    async def request(self, method: str, params: list[Any] | None = None) -> Any:
        """Shortcut: one JSON-RPC call through with_fallback()."""
        return await self.with_fallback(lambda t: t.request(method, params or []))

    async def aclose(self) -> None:
        """Close the active transport."""
        if self._transport is not None:
            transport, self._transport = self._transport, None
            await transport.aclose()

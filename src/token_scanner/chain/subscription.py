# -*- coding: utf-8 -*-
"""Subscription: async-iterable channel between a chain source and its consumer."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

from token_scanner.exceptions import PushDisconnected, SubscriptionClosed


class Subscription[T]:
    """Channel of pushed items (block headers or logs) backed by asyncio.Queue.

    The producer calls publish() per item, fail() when its transport died
    and close() on orderly teardown. The consumer iterates:

        async for item in subscription:
            ...

    Iteration ends cleanly after close() once buffered items are drained, and
    raises the failure (PushDisconnected by default) after fail().
    """

    def __init__(
        self,
        name: str,
        *,
        maxsize: int = 0,
        on_close: Callable[[], Awaitable[None]] | None = None,
    ) -> None:
        """Initialize the subscription.

        Args:
            name: Human-readable label used in logs (e.g. "new_heads", "mint_logs").
            maxsize: Maximum buffered items. 0 means unbounded.
            on_close: Optional coroutine run once on close() (e.g. eth_unsubscribe).
        """
        self.name = name
        self._queue: asyncio.Queue[T] = asyncio.Queue(maxsize=maxsize)
        self._error: BaseException | None = None
        self._closed = False
        self._on_close = on_close

    def __len__(self) -> int:
        return self._queue.qsize()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def error(self) -> BaseException | None:
        return self._error

    def publish(self, item: T) -> None:
        """Deliver one item without blocking.

        Raises:
            SubscriptionClosed: If the subscription was closed or failed.
        """
        try:
            self._queue.put_nowait(item)
        except asyncio.QueueShutDown as e:
            raise SubscriptionClosed(f"Subscription {self.name} is closed") from e

    def fail(self, exc: BaseException | None = None) -> None:
        """Mark the subscription as dead; the consumer gets exc on its next read."""
        if self._closed:
            return
        self._error = exc or PushDisconnected(f"Subscription {self.name} lost its transport")
        self._closed = True
        self._queue.shutdown(immediate=True)

    async def close(self) -> None:
        """End the subscription. Buffered items are still delivered."""
        if self._closed:
            return
        self._closed = True
        self._queue.shutdown()
        if self._on_close is not None:
            await self._on_close()

    def __aiter__(self) -> Subscription[T]:
        return self

    async def __anext__(self) -> T:
        try:
            return await self._queue.get()
        except asyncio.QueueShutDown:
            if self._error is not None:
                raise self._error from None
            raise StopAsyncIteration from None

"""Notification service: non-blocking enqueue, background fan-out to channels."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any, Optional

import structlog

from token_scanner.notifications.strategies import BaseNotificationStrategy
from token_scanner.notifications.types import NotificationMessage


class NotificationService:
    """Fan scanner alerts out to every configured channel from one worker task.

    notify() is safe to call from the ingestion path: it never awaits and never
    raises on delivery problems. Overflow and post-shutdown messages are dropped
    and counted; a channel that raises is logged and the others still receive
    the message.
    """

    def __init__(
        self,
        notifiers: list[BaseNotificationStrategy],
        queue_size: int = 1000,
        get_logger: Callable[[str], Any] = structlog.get_logger,
        logger_name: Optional[str] = None,
    ) -> None:
        self.notifiers = list(notifiers)
        self.queue_size = queue_size
        self._logger = get_logger(logger_name or self.__class__.__name__)
        self._queue: asyncio.Queue[NotificationMessage] | None = None
        self._worker_task: asyncio.Task[None] | None = None
        self.delivered = 0
        self.dropped = 0

    async def initialize(self) -> None:
        """Start every channel, then the dispatch worker (skipped with no channels)."""
        for notifier in self.notifiers:
            await notifier.initialize()
        if not self.notifiers:
            self._logger.info("notification_init_no_notifiers")
            return
        self._queue = asyncio.Queue(maxsize=self.queue_size)
        self._worker_task = asyncio.create_task(self._run_worker(self._queue))
        self._logger.debug(
            "notification_init_complete",
            notification_channels=[type(n).__name__ for n in self.notifiers],
            notification_queue_size=self.queue_size,
        )

    async def shutdown(self) -> None:
        """Deliver what is already queued, then stop the worker and the channels."""
        queue, self._queue = self._queue, None
        if queue is not None:
            queue.shutdown()
            await queue.join()
        task, self._worker_task = self._worker_task, None
        if task is not None:
            await task
        for notifier in self.notifiers:
            await notifier.shutdown()
        self._logger.debug(
            "notification_shutdown_complete",
            notification_delivered=self.delivered,
            notification_dropped=self.dropped,
        )

    def notify(self, message: NotificationMessage) -> None:
        """Queue message for delivery without waiting for any channel."""
        if self._queue is None:
            if self.notifiers:
                raise RuntimeError("NotificationService not initialized")
            return
        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            self._drop(message, "queue_full")
        except asyncio.QueueShutDown:
            self._drop(message, "shut_down")

    def _drop(self, message: NotificationMessage, reason: str) -> None:
        self.dropped += 1
        self._logger.warning(
            "notification_dropped",
            notification_event_type=message.event_type,
            notification_drop_reason=reason,
        )

    async def _run_worker(self, queue: asyncio.Queue[NotificationMessage]) -> None:
        while True:
            try:
                message = await queue.get()
            except asyncio.QueueShutDown:
                return
            try:
                await self._deliver(message)
            finally:
                queue.task_done()

    async def _deliver(self, message: NotificationMessage) -> None:
        for notifier in self.notifiers:
            channel = type(notifier).__name__
            try:
                await notifier.send_notification(message)
            except Exception as e:
                self._logger.error(
                    "notification_channel_failed",
                    notification_event_type=message.event_type,
                    notification_channel=channel,
                    error_type=type(e).__name__,
                    error_message=str(e),
                )
        self.delivered += 1

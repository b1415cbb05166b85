# -*- coding: utf-8 -*-
"""Retry policy: exponential backoff with error classification."""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

import aiohttp
import structlog

from token_scanner.exceptions import RateLimitError, TransientRpcError


class ErrorKind(str, Enum):
    """How the retry policy treats a failure."""

    RATE_LIMITED = "rate_limited"
    TRANSIENT = "transient"
    OTHER = "other"


def classify_error(exc: BaseException) -> ErrorKind:
    """Return the retry class of exc. Only RATE_LIMITED and TRANSIENT are retried."""
    if isinstance(exc, RateLimitError):
        return ErrorKind.RATE_LIMITED
    if isinstance(
        exc,
        (TransientRpcError, aiohttp.ClientConnectionError, asyncio.TimeoutError, ConnectionError),
    ):
        return ErrorKind.TRANSIENT
    return ErrorKind.OTHER


def is_retryable(exc: BaseException) -> bool:
    return classify_error(exc) is not ErrorKind.OTHER


class RetryPolicy:
    """Run an async operation with bounded retries.

    Delay before retry number attempt+1 (attempt is 0-based):
      - rate limited: base_delay * 2**attempt + jitter(0, 1.0)
      - transient:    base_delay * 2**attempt
    Other errors are re-raised at once. After max_attempts the last error is
    re-raised unchanged; there is no sleep after the final attempt.
    """

    def __init__(
        self,
        max_attempts: int = 5,
        base_delay: float = 1.0,
        *,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        jitter: Callable[[float, float], float] = random.uniform,
        get_logger: Callable[[str], Any] = structlog.get_logger,
        logger_name: str | None = None,
    ) -> None:
        """Initialize the policy.

        Args:
            max_attempts: Total attempts including the first one (>= 1).
            base_delay: Base backoff in seconds.
            sleep: Awaitable sleep (injected for tests).
            jitter: Random source for rate-limit jitter, called as jitter(0.0, 1.0).
            get_logger: Logger factory (injected) with default of structlog.get_logger.
            logger_name: Optional logger name (defaults to class name).
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if base_delay < 0:
            raise ValueError("base_delay must be >= 0")
        self._max_attempts = max_attempts
        self._base_delay = base_delay
        self._sleep = sleep
        self._jitter = jitter
        self._logger = get_logger(logger_name or self.__class__.__name__)

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    @property
    def base_delay(self) -> float:
        return self._base_delay

    def backoff_delay(self, kind: ErrorKind, attempt: int, base_delay: float | None = None) -> float:
        """Return the sleep before the next attempt after failing attempt (0-based)."""
        base = self._base_delay if base_delay is None else base_delay
        delay = base * (2**attempt)
        if kind is ErrorKind.RATE_LIMITED:
            delay += self._jitter(0.0, 1.0)
        return delay

    async def run[T](
        self,
        fn: Callable[[], Awaitable[T]],
        *,
        max_attempts: int | None = None,
        base_delay: float | None = None,
    ) -> T:
        """Call fn until it succeeds, fails with a non-retryable error, or attempts run out.

        Args:
            fn: Zero-argument coroutine factory; called once per attempt.
            max_attempts: Override of the configured attempt count.
            base_delay: Override of the configured base delay.

        Returns:
            Whatever fn returns.

        Raises:
            The last error from fn.
        """
        attempts = self._max_attempts if max_attempts is None else max_attempts
        if attempts < 1:
            raise ValueError("max_attempts must be >= 1")

        for attempt in range(attempts):
            try:
                return await fn()
            except Exception as e:
                kind = classify_error(e)
                if kind is ErrorKind.OTHER or attempt == attempts - 1:
                    raise
                delay = self.backoff_delay(kind, attempt, base_delay)
                self._logger.warning(
                    "retry_rate_limited" if kind is ErrorKind.RATE_LIMITED else "retry_transient",
                    retry_attempt=attempt + 1,
                    retry_max_attempts=attempts,
                    retry_delay_seconds=round(delay, 3),
                    error_type=type(e).__name__,
                    error_message=str(e),
                )
                await self._sleep(delay)
        raise AssertionError("unreachable")

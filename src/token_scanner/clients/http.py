# -*- coding: utf-8 -*-
"""Async HTTP client for JSON-RPC POSTs with transport error classification.

Retries are not done here: each call is a single attempt and failures are
raised as TransientRpcError / RateLimitError / PermanentRpcError so the
retry policy and failover manager can decide what to do.
"""

from __future__ import annotations

import asyncio
import uuid
import aiohttp
import structlog
from typing import Any, Callable, Dict, Optional
from structlog.contextvars import bound_contextvars

from token_scanner.config import Settings
from token_scanner.exceptions import PermanentRpcError, RateLimitError, RpcError, TransientRpcError


def _parse_retry_after(header: Optional[str]) -> Optional[float]:
    if not header:
        return None
    try:
        return float(header)
    except ValueError:
        return None


def _status_error(url: str, status: int, headers: Any) -> Optional[RpcError]:
    """Map a non-2xx status to the RPC error the failover layer understands."""
    if status == 429:
        return RateLimitError(url=url, retry_after=_parse_retry_after(headers.get("Retry-After")))
    if status >= 500:
        return TransientRpcError(f"HTTP {status} from {url}", url=url, code=status)
    if status >= 400:
        return PermanentRpcError(f"HTTP {status} from {url}", url=url, code=status)
    return None


class AsyncHttpClient:
    """One aiohttp session shared by every HTTP RPC transport.

    The session is created lazily with settings.chain.request_timeout_seconds
    as its total timeout. A session passed in by the caller is never closed here.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        session: Optional[aiohttp.ClientSession] = None,
        get_logger: Callable[[str], Any] = structlog.get_logger,
        logger_name: Optional[str] = None,
    ) -> None:
        self._settings = settings
        self._session = session
        self._owns_session = session is None
        self._logger = get_logger(logger_name or self.__class__.__name__)

    async def get_session(self) -> aiohttp.ClientSession:
        """Return the live session, creating it when missing or closed."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self._settings.chain.request_timeout_seconds)
            self._session = aiohttp.ClientSession(timeout=timeout)
            self._owns_session = True
        return self._session

    async def aclose(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> AsyncHttpClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    async def post_json(
        self,
        url: str,
        *,
        json: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """POST a JSON body and return the decoded response. Single attempt.

        Raises:
            RateLimitError: HTTP 429 (retry_after from the Retry-After header).
            TransientRpcError: Connection errors, timeouts, HTTP 5xx, undecodable body.
            PermanentRpcError: Other HTTP 4xx.
        """
        request_id = uuid.uuid4().hex[:12]
        with bound_contextvars(http_url=url, http_request_id=request_id):
            try:
                session = await self.get_session()
                async with session.post(url, json=json or {}) as response:
                    error = _status_error(url, response.status, response.headers)
                    if error is not None:
                        self._logger.debug(
                            "http_post_error_status",
                            http_status_code=response.status,
                            error_type=type(error).__name__,
                        )
                        raise error
                    return await response.json(content_type=None)
            except RpcError:
                raise
            except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
                self._logger.debug(
                    "http_post_failed",
                    error_type=type(e).__name__,
                    error_message=str(e),
                )
                raise TransientRpcError(
                    f"POST failed: {url}: {type(e).__name__}: {e}",
                    url=url,
                    cause=e,
                ) from e

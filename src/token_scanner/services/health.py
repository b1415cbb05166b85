"""Health query: liveness of the active endpoint plus ingestion counters."""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import structlog

from token_scanner.models.health import HealthReport, HealthStatus
from token_scanner.services.ingestion.ingestion_loop import IngestionState
from token_scanner.utils.validation import parse_hex_int

if TYPE_CHECKING:
    from token_scanner.services.ingestion.ingestion_loop import IngestionLoop
    from token_scanner.services.resilience.failover import FailoverManager


_STATE_STATUS: dict[IngestionState, HealthStatus] = {
    IngestionState.STARTING: "starting",
    IngestionState.DRAINING: "draining",
    IngestionState.STOPPED: "stopped",
}


class HealthMonitor:
    """Builds HealthReport snapshots on demand."""

    def __init__(
        self,
        failover: FailoverManager,
        ingestion: IngestionLoop,
        *,
        get_logger: Callable[[str], Any] = structlog.get_logger,
        logger_name: str | None = None,
    ) -> None:
        self._failover = failover
        self._ingestion = ingestion
        self._logger = get_logger(logger_name or self.__class__.__name__)

    async def health(self) -> HealthReport:
        """Probe the active endpoint once (no retry, no failover) and report.

        Only the live ingestion states report healthy; a failed probe reports error.
        """
        status = _STATE_STATUS.get(self._ingestion.state, "healthy")
        height: int | None = None
        error: str | None = None
        try:
            height = parse_hex_int(await self._failover.current().request("eth_blockNumber", []))
        except Exception as e:
            status = "error"
            error = f"{type(e).__name__}: {e}"
            self._logger.warning(
                "health_probe_failed",
                endpoint_url=self._failover.active_endpoint.url,
                error_type=type(e).__name__,
            )
        return HealthReport(
            status=status,
            current_height=height,
            uptime_seconds=round(self._ingestion.uptime_seconds, 3),
            last_processed_block=self._ingestion.last_processed_block,
            blocks_processed=self._ingestion.blocks_processed,
            entities_reported=self._ingestion.entities_reported,
            mode=self._ingestion.mode,
            error=error,
        )

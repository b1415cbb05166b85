"""Health report exposed to external monitoring."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Literal

HealthStatus = Literal["starting", "healthy", "draining", "stopped", "error"]


@dataclass(frozen=True, slots=True)
class HealthReport:
    """Snapshot of scanner health."""

    status: HealthStatus
    current_height: int | None
    uptime_seconds: float
    last_processed_block: int | None
    blocks_processed: int = 0
    entities_reported: int = 0
    mode: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert the report to a dictionary."""
        return asdict(self)

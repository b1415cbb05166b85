# -*- coding: utf-8 -*-
"""Application services."""

from token_scanner.services.detection import TokenProbe
from token_scanner.services.health import HealthMonitor
from token_scanner.services.ingestion import (
    BlockProcessor,
    BlockStats,
    EntityProcessor,
    IngestionLoop,
    IngestionState,
)
from token_scanner.services.resilience import ErrorKind, FailoverManager, RetryPolicy

__all__ = [
    "BlockProcessor",
    "BlockStats",
    "EntityProcessor",
    "ErrorKind",
    "FailoverManager",
    "HealthMonitor",
    "IngestionLoop",
    "IngestionState",
    "RetryPolicy",
    "TokenProbe",
]

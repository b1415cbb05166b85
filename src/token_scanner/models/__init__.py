# -*- coding: utf-8 -*-
"""Domain models."""

from token_scanner.models.candidate import CandidateEvent, CandidateKind
from token_scanner.models.endpoint import Endpoint, TransportKind
from token_scanner.models.health import HealthReport, HealthStatus
from token_scanner.models.seen_entity import SeenEntity
from token_scanner.models.token_metadata import CreatorStats, TokenMetadata

__all__ = [
    "CandidateEvent",
    "CandidateKind",
    "CreatorStats",
    "Endpoint",
    "HealthReport",
    "HealthStatus",
    "SeenEntity",
    "TokenMetadata",
    "TransportKind",
]

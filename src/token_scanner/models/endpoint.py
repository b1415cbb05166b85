"""Endpoint: one configured RPC server location."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum


class TransportKind(str, Enum):
    """How events are delivered from an endpoint."""

    PUSH = "push"
    PULL = "pull"


@dataclass(slots=True)
class Endpoint:
    """RPC location plus liveness bookkeeping.

    url and kind are fixed at startup; only last_success_at changes.
    """

    url: str
    kind: TransportKind
    last_success_at: datetime | None = field(default=None, compare=False)

    @classmethod
    def create(cls, url: str, kind: TransportKind) -> Endpoint:
        """Create an endpoint from a configured URL."""
        url = url.strip().rstrip("/")
        if not url:
            raise ValueError("endpoint url must be non-empty")
        return cls(url=url, kind=kind)

    def touch(self, at: datetime | None = None) -> None:
        """Record a successful call."""
        self.last_success_at = at or datetime.now(UTC)

"""SeenEntity: domain entity for persistent entity deduplication.

Identity is the lowercased address. Used to avoid re-reporting tokens and
pairs on restart.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime

from token_scanner.utils.validation import normalize_address


@dataclass(frozen=True, slots=True)
class SeenEntity:
    """Record that an address (token contract or LP pair) has been evaluated.

    Identity: address. Never updated, never deleted.
    """

    address: str
    """Lowercased 0x address."""
    first_block: int
    """Block in which the entity was first evaluated."""
    first_seen_at: datetime
    """When the entity was first evaluated."""

    @classmethod
    def create(
        cls,
        address: str,
        first_block: int,
        *,
        first_seen_at: datetime | None = None,
    ) -> SeenEntity:
        """Create a new SeenEntity record."""
        address = normalize_address(address)
        if not address:
            raise ValueError("address must be non-empty")
        if first_block < 0:
            raise ValueError("first_block must be >= 0")
        return cls(
            address=address,
            first_block=first_block,
            first_seen_at=first_seen_at or datetime.now(UTC),
        )

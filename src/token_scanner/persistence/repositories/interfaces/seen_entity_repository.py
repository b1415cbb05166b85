"""Abstract interface for seen entity storage (in-memory, SQLite, etc.)."""

from __future__ import annotations

from abc import ABC, abstractmethod

from token_scanner.models.seen_entity import SeenEntity


class ISeenEntityRepository(ABC):
    """Interface for the dedup store: addresses already evaluated and reported.

    Keys are case-normalized addresses. A completed mark() is visible to any
    seen() issued after it in the same process.
    """

    @abstractmethod
    async def seen(self, address: str) -> bool:
        """Return True if address has been marked."""
        ...

    @abstractmethod
    async def mark(self, address: str, block: int) -> None:
        """Record that address was evaluated at block. Idempotent (re-marking is a no-op)."""
        ...

    @abstractmethod
    async def get(self, address: str) -> SeenEntity | None:
        """Return the stored record for address, or None."""
        ...

    @abstractmethod
    async def count(self) -> int:
        """Return the number of stored entities."""
        ...

    async def close(self) -> None:
        """Release storage resources. Default is a no-op."""
        return None

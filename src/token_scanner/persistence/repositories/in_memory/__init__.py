"""In-memory repository implementations."""

from token_scanner.persistence.repositories.in_memory.seen_entity_repository import (
    InMemorySeenEntityRepository,
)

__all__ = ["InMemorySeenEntityRepository"]

"""SQLite repository implementations."""

from token_scanner.persistence.repositories.sqlite.seen_entity_repository import (
    SqliteSeenEntityRepository,
)

__all__ = ["SqliteSeenEntityRepository"]

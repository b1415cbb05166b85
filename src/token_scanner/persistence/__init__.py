"""Persistence layer (repositories, etc.)."""

from token_scanner.persistence.repositories import (
    ISeenEntityRepository,
    InMemorySeenEntityRepository,
    SqliteSeenEntityRepository,
)

__all__ = [
    "ISeenEntityRepository",
    "InMemorySeenEntityRepository",
    "SqliteSeenEntityRepository",
]

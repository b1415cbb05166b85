# -*- coding: utf-8 -*-
"""Repositories: interfaces (abstractions) and implementations (in_memory, sqlite)."""

from token_scanner.persistence.repositories.interfaces import ISeenEntityRepository
from token_scanner.persistence.repositories.in_memory import InMemorySeenEntityRepository
from token_scanner.persistence.repositories.sqlite import SqliteSeenEntityRepository

__all__ = [
    "ISeenEntityRepository",
    "InMemorySeenEntityRepository",
    "SqliteSeenEntityRepository",
]

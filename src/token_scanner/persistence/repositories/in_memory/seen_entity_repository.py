# -*- coding: utf-8 -*-
"""In-memory seen entity repository (keyed by lowercased address)."""

from __future__ import annotations

from token_scanner.models.seen_entity import SeenEntity
from token_scanner.persistence.repositories.interfaces.seen_entity_repository import (
    ISeenEntityRepository,
)
from token_scanner.utils.validation import normalize_address


class InMemorySeenEntityRepository(ISeenEntityRepository):
    """In-memory implementation of ISeenEntityRepository. Lost on restart."""

    def __init__(self) -> None:
        """Initialize an empty in-memory store."""
        self._store: dict[str, SeenEntity] = {}

    async def seen(self, address: str) -> bool:
        return normalize_address(address) in self._store

    async def mark(self, address: str, block: int) -> None:
        """Record the address. First write wins."""
        k = normalize_address(address)
        if k not in self._store:
            self._store[k] = SeenEntity.create(k, block)

    async def get(self, address: str) -> SeenEntity | None:
        return self._store.get(normalize_address(address))

    async def count(self) -> int:
        return len(self._store)

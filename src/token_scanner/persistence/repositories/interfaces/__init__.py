# -*- coding: utf-8 -*-
"""Repository interfaces (abstractions). Implementations live in in_memory/, sqlite/."""

from token_scanner.persistence.repositories.interfaces.seen_entity_repository import (
    ISeenEntityRepository,
)

__all__ = ["ISeenEntityRepository"]

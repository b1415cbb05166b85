# -*- coding: utf-8 -*-
"""SQLite seen entity repository (durable across restarts)."""

from __future__ import annotations

import sqlite3
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import structlog

from token_scanner.models.seen_entity import SeenEntity
from token_scanner.persistence.repositories.interfaces.seen_entity_repository import (
    ISeenEntityRepository,
)
from token_scanner.utils.validation import normalize_address

_SCHEMA = "CREATE TABLE IF NOT EXISTS seen(address TEXT PRIMARY KEY, block INTEGER, ts INTEGER)"


class SqliteSeenEntityRepository(ISeenEntityRepository):
    """SQLite implementation of ISeenEntityRepository.

    One connection, one writer. Each mark() commits before returning, so a
    following seen() on the same connection observes it. ts is epoch millis.
    """

    def __init__(
        self,
        db_path: str | Path,
        *,
        get_logger: Callable[[str], Any] = structlog.get_logger,
        logger_name: str | None = None,
    ) -> None:
        """Open (or create) the database and ensure the schema exists.

        Args:
            db_path: File path, or ":memory:" for a throwaway database.
            get_logger: Logger factory (injected) with default of structlog.get_logger.
            logger_name: Optional logger name (defaults to class name).
        """
        self._logger = get_logger(logger_name or self.__class__.__name__)
        path = str(db_path)
        if path != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        self._conn: sqlite3.Connection | None = sqlite3.connect(path)
        self._conn.execute(_SCHEMA)
        self._conn.commit()
        self._logger.debug("seen_store_opened", seen_store_path=path)

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("SqliteSeenEntityRepository is closed")
        return self._conn

    async def seen(self, address: str) -> bool:
        row = self._connection().execute(
            "SELECT 1 FROM seen WHERE address = ?", (normalize_address(address),)
        ).fetchone()
        return row is not None

    async def mark(self, address: str, block: int) -> None:
        """Insert the address unless present (INSERT OR IGNORE)."""
        entity = SeenEntity.create(address, block)
        conn = self._connection()
        conn.execute(
            "INSERT OR IGNORE INTO seen (address, block, ts) VALUES (?, ?, ?)",
            (
                entity.address,
                entity.first_block,
                int(entity.first_seen_at.timestamp() * 1000),
            ),
        )
        conn.commit()

    async def get(self, address: str) -> SeenEntity | None:
        row = self._connection().execute(
            "SELECT address, block, ts FROM seen WHERE address = ?",
            (normalize_address(address),),
        ).fetchone()
        if row is None:
            return None
        addr, block, ts = row
        return SeenEntity(
            address=addr,
            first_block=int(block),
            first_seen_at=datetime.fromtimestamp(int(ts) / 1000, tz=UTC),
        )

    async def count(self) -> int:
        row = self._connection().execute("SELECT COUNT(*) FROM seen").fetchone()
        return int(row[0]) if row else 0

    async def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            self._logger.debug("seen_store_closed")

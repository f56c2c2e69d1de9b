# src/storage/sqlite_store.py — v1
"""SQLite-backed relational store.

Uses stdlib sqlite3 with a single connection in autocommit mode; explicit
transactions are opened by transaction(). Every sqlite3 error is re-raised
as PersistenceError so callers handle one exception type.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Sequence

from promptrelay.core.errors import PersistenceError
from promptrelay.storage.base_store import BaseStore, ExecuteResult, Row
from promptrelay.storage.schema import SCHEMA

logger = logging.getLogger(__name__)

MEMORY = ":memory:"


def _dict_factory(cursor: sqlite3.Cursor, row: tuple[Any, ...]) -> Row:
    return {col[0]: row[idx] for idx, col in enumerate(cursor.description)}


class SqliteStore(BaseStore):
    """SQLite store. Pass ``":memory:"`` for an ephemeral database."""

    def __init__(self, db_path: Path | str = MEMORY) -> None:
        if str(db_path) == MEMORY:
            target = MEMORY
        else:
            path = Path(db_path).expanduser()
            path.parent.mkdir(parents=True, exist_ok=True)
            target = str(path)
        self._db_path = target
        self._conn = sqlite3.connect(target, isolation_level=None)
        self._conn.row_factory = _dict_factory
        self._conn.execute("PRAGMA foreign_keys=ON")
        if target != MEMORY:
            self._conn.execute("PRAGMA journal_mode=WAL")
        self._tx_depth = 0

    @property
    def db_path(self) -> str:
        return self._db_path

    async def initialize(self) -> None:
        try:
            self._conn.executescript(SCHEMA)
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to initialize schema: {e}") from e
        logger.debug("Database initialized at %s", self._db_path)

    async def fetch_one(self, sql: str, params: Sequence[Any] = ()) -> Row | None:
        try:
            return self._conn.execute(sql, tuple(params)).fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"Query failed: {e}") from e

    async def fetch_all(self, sql: str, params: Sequence[Any] = ()) -> list[Row]:
        try:
            return self._conn.execute(sql, tuple(params)).fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(f"Query failed: {e}") from e

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> ExecuteResult:
        try:
            cursor = self._conn.execute(sql, tuple(params))
        except sqlite3.Error as e:
            raise PersistenceError(f"Write failed: {e}") from e
        return ExecuteResult(last_row_id=cursor.lastrowid, row_count=cursor.rowcount)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """Atomic block. Nested blocks join the outermost transaction."""
        if self._tx_depth:
            self._tx_depth += 1
            try:
                yield
            finally:
                self._tx_depth -= 1
            return

        try:
            self._conn.execute("BEGIN")
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to begin transaction: {e}") from e
        self._tx_depth = 1
        try:
            yield
        except BaseException:
            self._tx_depth = 0
            self._conn.execute("ROLLBACK")
            raise
        self._tx_depth = 0
        try:
            self._conn.execute("COMMIT")
        except sqlite3.Error as e:
            self._conn.execute("ROLLBACK")
            raise PersistenceError(f"Failed to commit transaction: {e}") from e

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

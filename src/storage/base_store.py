# src/storage/base_store.py — v1
"""Abstract relational store interface.

The coordinator and repository only need four primitives: fetch one row,
fetch all rows, execute a statement, and group statements in a transaction.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, AsyncContextManager, Sequence

Row = dict[str, Any]


@dataclass(frozen=True)
class ExecuteResult:
    """Outcome of a write statement."""

    last_row_id: int | None
    row_count: int


class BaseStore(ABC):
    """Unified interface for relational storage backends."""

    @abstractmethod
    async def fetch_one(self, sql: str, params: Sequence[Any] = ()) -> Row | None:
        """Return the first row of a query, or None."""

    @abstractmethod
    async def fetch_all(self, sql: str, params: Sequence[Any] = ()) -> list[Row]:
        """Return every row of a query."""

    @abstractmethod
    async def execute(self, sql: str, params: Sequence[Any] = ()) -> ExecuteResult:
        """Run a write statement."""

    @abstractmethod
    def transaction(self) -> AsyncContextManager[None]:
        """Group statements atomically; rolls back if the block raises."""

    @abstractmethod
    async def initialize(self) -> None:
        """Create tables if they do not exist."""

    def close(self) -> None:
        """Release the underlying connection."""

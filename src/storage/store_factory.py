# src/storage/store_factory.py — v1
"""Factory for store instantiation."""

from __future__ import annotations

from promptrelay.config.settings import Settings
from promptrelay.storage.base_store import BaseStore


async def create_store(settings: Settings | None = None) -> BaseStore:
    """Open the configured datastore and make sure its schema exists.

    Args:
        settings: Application settings. None opens an in-memory database.
    """
    from promptrelay.storage.sqlite_store import MEMORY, SqliteStore

    db_path = MEMORY if settings is None else settings.database_path
    store = SqliteStore(db_path)
    await store.initialize()
    return store

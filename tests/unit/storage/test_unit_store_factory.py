# tests/unit/storage/test_unit_store_factory.py — v1
"""Tests for storage/store_factory.py."""

from __future__ import annotations

import pytest

from promptrelay.config.settings import Settings
from promptrelay.storage.sqlite_store import MEMORY, SqliteStore
from promptrelay.storage.store_factory import create_store


class TestCreateStore:
    @pytest.mark.asyncio
    async def test_memory_without_settings(self):
        store = await create_store()
        assert isinstance(store, SqliteStore)
        assert store.db_path == MEMORY
        assert await store.fetch_all("SELECT * FROM runs") == []
        store.close()

    @pytest.mark.asyncio
    async def test_configured_path(self, tmp_path):
        settings = Settings(_env_file=None, database_path=tmp_path / "relay.db")
        store = await create_store(settings)
        assert store.db_path == str(tmp_path / "relay.db")
        assert (tmp_path / "relay.db").exists()
        store.close()

"""Tests for the durable cooldown store."""
import os
from unittest.mock import AsyncMock, patch

import aiosqlite
import pytest

from raidgate.services.cooldown_store import CooldownStore, StorageInitError


class TestOpen:
    @pytest.mark.asyncio
    async def test_open_creates_empty_store(self, store):
        """A fresh store loads no records."""
        assert await store.load() == {}
        assert store.writes == 0

    @pytest.mark.asyncio
    async def test_open_failure_raises_storage_init_error(self, tmp_path):
        """Failures creating the data directory are fatal."""
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("x")

        with pytest.raises(StorageInitError):
            await CooldownStore.open(os.path.join(str(blocker), "raidgate.db"))

    @pytest.mark.asyncio
    async def test_open_wraps_sqlite_errors(self, temp_db):
        """sqlite errors during open surface as StorageInitError."""
        with patch(
            "raidgate.services.cooldown_store.Database.init",
            new_callable=AsyncMock,
            side_effect=aiosqlite.OperationalError("unable to open database file"),
        ):
            with pytest.raises(StorageInitError, match="unable to open"):
                await CooldownStore.open(temp_db)


class TestWriteBatch:
    @pytest.mark.asyncio
    async def test_upserts_are_persisted(self, store, temp_db):
        """Records written in a batch survive reopening the store."""
        await store.write_batch({"111": 1700000100, "222": 1700000200})

        reopened = await CooldownStore.open(temp_db)
        try:
            assert await reopened.load() == {"111": 1700000100, "222": 1700000200}
        finally:
            await reopened.close()

    @pytest.mark.asyncio
    async def test_deletes_remove_rows(self, store):
        """Deleted keys disappear rather than being written as tombstones."""
        await store.write_batch({"111": 100, "222": 200})
        await store.write_batch({}, ["111"])

        assert await store.load() == {"222": 200}
        rows = await store.db.fetchall("SELECT actor_id FROM cooldowns")
        assert [r[0] for r in rows] == ["222"]

    @pytest.mark.asyncio
    async def test_delete_of_unknown_key_is_harmless(self, store):
        await store.write_batch({}, ["999"])
        assert await store.load() == {}

    @pytest.mark.asyncio
    async def test_each_batch_counts_as_one_write(self, store):
        """Any number of keys in a batch is a single write."""
        await store.write_batch({str(i): 1000 + i for i in range(50)}, ["x", "y"])
        assert store.writes == 1

    @pytest.mark.asyncio
    async def test_upsert_overwrites_existing_value(self, store):
        await store.write_batch({"111": 100})
        await store.write_batch({"111": 500})
        assert store.records == {"111": 500}

    @pytest.mark.asyncio
    async def test_expiry_is_stored_as_integer(self, store):
        await store.write_batch({"111": 1700000100.9})  # type: ignore[dict-item]
        row = await store.db.fetchone("SELECT expires_at FROM cooldowns WHERE actor_id = ?", ("111",))
        assert row[0] == 1700000100

    @pytest.mark.asyncio
    async def test_failed_write_keeps_previous_records(self, store):
        """The in-memory mirror only changes after a successful commit."""
        await store.write_batch({"111": 100})

        with patch.object(store.db, "execute_batch", new_callable=AsyncMock, side_effect=OSError("disk full")):
            with pytest.raises(OSError):
                await store.write_batch({"222": 200})

        assert store.records == {"111": 100}
        assert store.writes == 1
        assert await store.load() == {"111": 100}

    @pytest.mark.asyncio
    async def test_malformed_rows_are_kept_on_rewrite(self, store):
        """Rows the engine cannot parse are left in place by later rewrites."""
        await store.db.execute("INSERT INTO cooldowns (actor_id, expires_at) VALUES (?, ?)", ("not-a-user", 5))
        await store.load()

        await store.write_batch({"111": 100})

        assert await store.load() == {"not-a-user": 5, "111": 100}

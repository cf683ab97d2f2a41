"""Durable cooldown records backed by the sqlite database."""
from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

import aiosqlite

from .db import Database


log = logging.getLogger(__name__)


class StorageInitError(RuntimeError):
    """The cooldown store could not be created or opened."""


class CooldownStore:
    """Keyed record set of actor id (string) -> expiry epoch seconds (int).

    The store keeps an in-memory mirror of the rows on disk. Every call to
    write_batch() applies the changes to a copy of the mirror and rewrites the
    whole table inside one transaction; the mirror is replaced only after the
    commit succeeds.
    """

    def __init__(self, db: Database) -> None:
        self.db = db
        self._records: dict[str, Any] = {}
        self.writes = 0

    @classmethod
    async def open(cls, path: str) -> "CooldownStore":
        try:
            db = await Database.init(path)
        except (OSError, aiosqlite.Error) as e:
            log.error("Could not open cooldown storage at %s: %s", path, e)
            raise StorageInitError(f"Failed to open cooldown storage at {path}: {e}") from e
        return cls(db)

    async def load(self) -> dict[str, Any]:
        """Read every row once and return a copy keyed by the raw actor id."""
        rows = await self.db.fetchall("SELECT actor_id, expires_at FROM cooldowns")
        self._records = {str(r[0]): r[1] for r in rows}
        return dict(self._records)

    @property
    def records(self) -> dict[str, Any]:
        return dict(self._records)

    async def write_batch(self, upserts: Mapping[str, int], deletes: Iterable[str] = ()) -> None:
        """Apply upserts and deletes and persist the full record set in one write."""
        updated = dict(self._records)
        for key in deletes:
            updated.pop(key, None)
        for key, expires_at in upserts.items():
            updated[key] = int(expires_at)

        statements: list[tuple[str, Iterable[Any]]] = [("DELETE FROM cooldowns", ())]
        statements.extend(
            ("INSERT INTO cooldowns (actor_id, expires_at) VALUES (?, ?)", (key, value))
            for key, value in updated.items()
        )
        await self.db.execute_batch(statements)
        self._records = updated
        self.writes += 1

    async def close(self) -> None:
        await self.db.close()

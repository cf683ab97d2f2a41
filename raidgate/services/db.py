from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from typing import Any, Iterable

import aiosqlite


log = logging.getLogger(__name__)

# Retry configuration for database lock handling
_DB_RETRY_ATTEMPTS = 3
_DB_RETRY_DELAY = 0.1  # seconds

_SCHEMA_PATH = os.path.normpath(os.path.join(os.path.dirname(__file__), "../storage/schema.sql"))


def _is_locked(e: Exception) -> bool:
    return "locked" in str(e).lower()


@dataclass
class Database:
    path: str
    conn: aiosqlite.Connection

    @classmethod
    async def init(cls, path: str) -> "Database":
        # Create parent directory if needed (skip for in-memory databases)
        if path != ":memory:":
            parent_dir = os.path.dirname(path)
            if parent_dir:
                os.makedirs(parent_dir, exist_ok=True)

        if not os.path.isfile(_SCHEMA_PATH):
            log.error("Schema file not found: %s", _SCHEMA_PATH)
            raise FileNotFoundError(f"Database schema not found: {_SCHEMA_PATH}")

        conn = await aiosqlite.connect(path)
        try:
            conn.row_factory = aiosqlite.Row
            try:
                # Flushes are already batched; FULL keeps each commit durable
                await conn.execute("PRAGMA synchronous = FULL;")
            except aiosqlite.Error:
                # Ignore if unavailable
                pass
            with open(_SCHEMA_PATH, "r", encoding="utf-8") as f:
                await conn.executescript(f.read())
            await conn.commit()
        except BaseException:
            await conn.close()
            raise
        return cls(path=path, conn=conn)

    async def close(self) -> None:
        await self.conn.close()

    async def execute(self, sql: str, params: Iterable[Any] = ()) -> None:
        """Execute a statement and commit with retry on database lock."""
        await self.execute_batch([(sql, params)])

    async def execute_batch(self, statements: Iterable[tuple[str, Iterable[Any]]]) -> None:
        """Run statements in one transaction with a single commit.

        The transaction is rolled back on any error so a failed batch
        leaves the previous contents in place.
        """
        ops = [(sql, tuple(params)) for sql, params in statements]
        last_error: Exception | None = None
        for attempt in range(_DB_RETRY_ATTEMPTS):
            try:
                for sql, params in ops:
                    await self.conn.execute(sql, params)
                await self.conn.commit()
                return
            except aiosqlite.Error as e:
                await self._rollback()
                if isinstance(e, aiosqlite.OperationalError) and _is_locked(e) and attempt < _DB_RETRY_ATTEMPTS - 1:
                    last_error = e
                    await asyncio.sleep(_DB_RETRY_DELAY * (attempt + 1))
                    continue
                raise
            except BaseException:
                # e.g. OverflowError binding a parameter after earlier statements ran
                await self._rollback()
                raise
        if last_error:
            raise last_error

    async def _rollback(self) -> None:
        try:
            await self.conn.rollback()
        except aiosqlite.Error as e:
            log.debug("rollback failed: %s", e)

    async def fetchone(self, sql: str, params: Iterable[Any] = ()) -> aiosqlite.Row | None:
        """Fetch one row with retry on database lock."""
        rows = await self._fetch(sql, params, one=True)
        return rows[0] if rows else None

    async def fetchall(self, sql: str, params: Iterable[Any] = ()) -> list[aiosqlite.Row]:
        """Fetch all rows with retry on database lock."""
        return await self._fetch(sql, params, one=False)

    async def _fetch(self, sql: str, params: Iterable[Any], one: bool) -> list[aiosqlite.Row]:
        last_error: Exception | None = None
        for attempt in range(_DB_RETRY_ATTEMPTS):
            try:
                async with self.conn.execute(sql, tuple(params)) as cur:
                    if one:
                        row = await cur.fetchone()
                        return [row] if row is not None else []
                    return list(await cur.fetchall())
            except aiosqlite.OperationalError as e:
                if _is_locked(e) and attempt < _DB_RETRY_ATTEMPTS - 1:
                    last_error = e
                    await asyncio.sleep(_DB_RETRY_DELAY * (attempt + 1))
                    continue
                raise
        if last_error:
            raise last_error
        return []

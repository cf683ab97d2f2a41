"""Pytest configuration and shared fixtures."""
import os
import tempfile
from typing import AsyncGenerator

import pytest

from raidgate.config import CooldownSettings


class FakeClock:
    """Manually advanced epoch clock."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> CooldownSettings:
    return CooldownSettings(cooldown_seconds=10, cleanup_interval_minutes=0, log_actions=True)


@pytest.fixture
async def temp_db() -> AsyncGenerator[str, None]:
    """Create a temporary database path for testing."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as tmp:
        db_path = tmp.name

    try:
        yield db_path
    finally:
        for suffix in ("", "-journal"):
            try:
                os.unlink(db_path + suffix)
            except FileNotFoundError:
                pass


@pytest.fixture
async def db_with_schema(temp_db: str):
    """Create a database with the schema applied."""
    from raidgate.services.db import Database

    db = await Database.init(temp_db)
    try:
        yield db
    finally:
        await db.close()


@pytest.fixture
async def store(temp_db: str):
    """An opened cooldown store on a fresh database."""
    from raidgate.services.cooldown_store import CooldownStore

    s = await CooldownStore.open(temp_db)
    try:
        yield s
    finally:
        await s.close()

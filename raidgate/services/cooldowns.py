"""Per-user raid cooldowns with batched persistence.

The ledger is the authoritative runtime state. Reservations, resets and
cleanup sweeps change it and mark the affected users dirty; a periodic flush
drains the dirty set and rewrites the durable records in a single write.
"""
from __future__ import annotations

import asyncio
import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable

import aiosqlite

from ..config import CooldownSettings
from .cooldown_store import CooldownStore
from .ledger import CooldownLedger, DirtyTracker
from .tasks import PeriodicTask


log = logging.getLogger(__name__)


Clock = Callable[[], float]


@dataclass(frozen=True)
class Reservation:
    allowed: bool
    remaining: float = 0.0

    def __bool__(self) -> bool:
        return self.allowed


ALLOWED = Reservation(allowed=True)

# 9999-12-31T23:59:59Z; keeps expiries inside sqlite INTEGER and datetime range
MAX_EXPIRY = 253402300799.0


def _fmt_ts(epoch: float) -> str:
    try:
        return datetime.fromtimestamp(epoch, tz=timezone.utc).isoformat(timespec="seconds")
    except (OverflowError, OSError, ValueError):
        return str(int(epoch))


class CooldownManager:
    def __init__(self, store: CooldownStore, settings: CooldownSettings, clock: Clock = time.time) -> None:
        self.store = store
        self.settings = settings
        self._clock = clock
        self._ledger = CooldownLedger()
        self._dirty = DirtyTracker()
        # Serializes reserve, clear and sweep eviction
        self._lock = threading.Lock()
        # Serializes every write to the store
        self._write_lock = asyncio.Lock()
        self._cleanup_task = PeriodicTask("cooldown-cleanup", settings.cleanup_interval_sec, self.run_cleanup)
        self._save_task = PeriodicTask("cooldown-save", settings.save_interval_sec, self.flush)
        self._shut_down = False

    @classmethod
    async def create(cls, store: CooldownStore, settings: CooldownSettings, clock: Clock = time.time) -> "CooldownManager":
        """Build a manager seeded from the store. Background tasks are not started."""
        manager = cls(store, settings, clock=clock)
        await manager._load()
        return manager

    async def _load(self) -> None:
        records = await self.store.load()
        now = self._clock()
        loaded = 0
        expired: list[str] = []

        for key, raw_expiry in records.items():
            try:
                actor_id = int(key)
            except (TypeError, ValueError):
                log.warning("Invalid user id in cooldown data: %r", key)
                continue
            if isinstance(raw_expiry, bool) or not isinstance(raw_expiry, int):
                log.warning("Invalid expiry for user %s in cooldown data: %r", key, raw_expiry)
                continue
            if raw_expiry > now:
                self._ledger.set(actor_id, float(raw_expiry))
                loaded += 1
            else:
                expired.append(key)

        if expired:
            async with self._write_lock:
                try:
                    await self.store.write_batch({}, expired)
                except (aiosqlite.Error, OSError) as e:
                    log.error("Could not remove %d expired cooldowns from storage: %s", len(expired), e)

        log.info("Loaded %d active cooldowns, cleaned up %d expired cooldowns", loaded, len(expired))

    # --- background tasks -------------------------------------------------

    def start(self) -> None:
        """Start the cleanup sweeper and the periodic save task."""
        if self._shut_down:
            raise RuntimeError("CooldownManager has been shut down")
        self._cleanup_task.start()
        self._save_task.start()

    def apply_settings(self, settings: CooldownSettings) -> None:
        """Swap in reloaded settings.

        The cooldown duration and action logging take effect immediately; the
        task intervals keep the values they were started with.
        """
        self.settings = settings

    # --- reservation engine -------------------------------------------------

    def try_reserve(self, actor_id: int, bypass: bool = False, duration: float | None = None) -> Reservation:
        """Atomically check the user's cooldown and start a new one if it is over."""
        if bypass:
            return ALLOWED
        if duration is None:
            duration = self.settings.cooldown_seconds

        with self._lock:
            now = self._clock()
            remaining = self._remaining_at(actor_id, now)
            if remaining > 0:
                return Reservation(allowed=False, remaining=remaining)
            expires_at = min(now + duration, MAX_EXPIRY)
            self._ledger.set(actor_id, expires_at)
            self._dirty.mark(actor_id)

        if self.settings.log_actions:
            log.info("Set raid cooldown for %s until %s", actor_id, _fmt_ts(expires_at))
        return ALLOWED

    def remaining(self, actor_id: int) -> float:
        """Seconds left on the user's cooldown, 0 when there is none."""
        return self._remaining_at(actor_id, self._clock())

    def _remaining_at(self, actor_id: int, now: float) -> float:
        expires_at = self._ledger.get(actor_id)
        if expires_at is None:
            return 0.0
        return max(0.0, expires_at - now)

    def has_cooldown(self, actor_id: int) -> bool:
        return self.remaining(actor_id) > 0

    def clear(self, actor_id: int) -> bool:
        """Remove the user's cooldown. Always marks the user dirty so a stale row is deleted."""
        with self._lock:
            existed = self._ledger.pop(actor_id) is not None
            self._dirty.mark(actor_id)
        if existed and self.settings.log_actions:
            log.info("Removed raid cooldown for %s", actor_id)
        return existed

    # --- queries ----------------------------------------------------------

    def active_cooldowns(self) -> dict[int, float]:
        """Remaining seconds for every user whose cooldown has not yet expired."""
        now = self._clock()
        return {
            actor_id: expires_at - now
            for actor_id, expires_at in self._ledger.snapshot().items()
            if expires_at > now
        }

    def active_count(self) -> int:
        return len(self.active_cooldowns())

    def tracked_count(self) -> int:
        """Entries held in memory, including expired ones not yet swept."""
        return len(self._ledger)

    def pending_writes(self) -> int:
        return len(self._dirty)

    # --- cleanup sweeper --------------------------------------------------

    def sweep(self) -> int:
        """Evict expired entries and mark them dirty. Returns how many were evicted."""
        cleaned = 0
        with self._lock:
            now = self._clock()
            for actor_id, expires_at in self._ledger.snapshot().items():
                if expires_at > now:
                    continue
                if self._ledger.pop_if_expired(actor_id, now):
                    self._dirty.mark(actor_id)
                    cleaned += 1
        return cleaned

    async def run_cleanup(self) -> int:
        cleaned = self.sweep()
        if cleaned > 0:
            log.info("Cleaned up %d expired cooldowns", cleaned)
            # Persist the deletions now instead of waiting for the next save
            await self.flush()
        return cleaned

    # --- persistence ------------------------------------------------------

    async def flush(self) -> bool:
        """Write every dirty user to the store in one batch.

        Returns False when the write failed; the drained users are put back
        into the dirty set so the next flush retries them.
        """
        async with self._write_lock:
            pending = self._dirty.drain()
            if not pending:
                return True

            saved = False
            try:
                upserts: dict[str, int] = {}
                deletes: list[str] = []
                for actor_id in pending:
                    expires_at = self._ledger.get(actor_id)
                    if expires_at is None:
                        deletes.append(str(actor_id))
                    else:
                        upserts[str(actor_id)] = int(expires_at)

                await self.store.write_batch(upserts, deletes)
                saved = True
            except Exception as e:  # noqa: BLE001
                log.error("Could not save %d cooldowns, will retry on next flush: %s", len(pending), e)
                return False
            finally:
                # Cancellation included: drained users stay dirty unless the write committed
                if not saved:
                    self._dirty.restore(pending)

        if self.settings.log_actions and upserts:
            log.debug("Batch saved %d cooldowns (%d removed)", len(upserts), len(deletes))
        return True

    # --- shutdown ---------------------------------------------------------

    async def shutdown(self) -> bool:
        """Stop the background tasks and write out every remaining change."""
        self._shut_down = True
        await self._cleanup_task.stop()
        await self._save_task.stop()

        ok = await self.flush()
        if ok:
            log.info("CooldownManager shut down successfully")
        else:
            log.error("CooldownManager shut down with %d unsaved cooldown changes", self.pending_writes())
        return ok

    def get_stats(self) -> dict[str, Any]:
        return {
            "active": self.active_count(),
            "tracked": self.tracked_count(),
            "pending_writes": self.pending_writes(),
            "store_writes": self.store.writes,
            "cleanup_runs": self._cleanup_task.runs,
            "save_runs": self._save_task.runs,
        }

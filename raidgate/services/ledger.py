"""Thread-safe containers for cooldown state and pending persistence."""
from __future__ import annotations

import threading
from typing import Iterable


class CooldownLedger:
    """Concurrent mapping of actor id -> cooldown expiry (epoch seconds).

    Individual operations are atomic. Compound read-modify-write sequences
    need an outer lock held by the caller.
    """

    def __init__(self) -> None:
        self._entries: dict[int, float] = {}
        self._lock = threading.Lock()

    def get(self, actor_id: int) -> float | None:
        with self._lock:
            return self._entries.get(actor_id)

    def set(self, actor_id: int, expires_at: float) -> None:
        with self._lock:
            self._entries[actor_id] = expires_at

    def pop(self, actor_id: int) -> float | None:
        with self._lock:
            return self._entries.pop(actor_id, None)

    def pop_if_expired(self, actor_id: int, now: float) -> bool:
        """Remove the entry only if its current value is at or before now."""
        with self._lock:
            expires_at = self._entries.get(actor_id)
            if expires_at is None or expires_at > now:
                return False
            del self._entries[actor_id]
            return True

    def snapshot(self) -> dict[int, float]:
        with self._lock:
            return dict(self._entries)

    def __contains__(self, actor_id: object) -> bool:
        with self._lock:
            return actor_id in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class DirtyTracker:
    """Set of actor ids whose ledger entry changed since the last flush."""

    def __init__(self) -> None:
        self._pending: set[int] = set()
        self._lock = threading.Lock()

    def mark(self, actor_id: int) -> None:
        with self._lock:
            self._pending.add(actor_id)

    def drain(self) -> frozenset[int]:
        """Atomically take every pending id and leave an empty set behind.

        Ids marked while a drain is in progress end up either in the returned
        snapshot or in the fresh set, never in neither.
        """
        with self._lock:
            taken, self._pending = self._pending, set()
        return frozenset(taken)

    def restore(self, actor_ids: Iterable[int]) -> None:
        """Put ids back after a failed flush so the next one retries them."""
        with self._lock:
            self._pending.update(actor_ids)

    def __contains__(self, actor_id: object) -> bool:
        with self._lock:
            return actor_id in self._pending

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)

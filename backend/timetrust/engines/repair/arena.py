"""Entry arena — immutable id-indexed entry snapshot with owner-day versions.

The version token of an owner-day is a content hash of that day's entries,
so any create, edit or delete on the day changes it. RepairCoordinator
serializes guarded repairs per owner-day and merges their results into the
latest arena.
"""

from __future__ import annotations

import datetime as dt
import hashlib
import logging
import threading
from collections.abc import Iterable, Iterator
from types import MappingProxyType
from typing import TYPE_CHECKING

from timetrust.models.entry import TimeInterval
from timetrust.models.repair import RepairAction, RepairOutcome

if TYPE_CHECKING:
    from timetrust.engines.repair.repair_engine import RepairEngine

logger = logging.getLogger(__name__)

OwnerDay = tuple[str, dt.date]


class EntryArena:
    """Read-only mapping of entry id to entry. Changes produce a new arena."""

    def __init__(self, entries: Iterable[TimeInterval] = ()) -> None:
        index: dict[str, TimeInterval] = {}
        for entry in entries:
            index[entry.id] = entry
        self._index = MappingProxyType(index)

    def __len__(self) -> int:
        return len(self._index)

    def __iter__(self) -> Iterator[TimeInterval]:
        return iter(self._index.values())

    def __contains__(self, entry_id: object) -> bool:
        return entry_id in self._index

    def get(self, entry_id: str) -> TimeInterval | None:
        return self._index.get(entry_id)

    def entries(self) -> list[TimeInterval]:
        return list(self._index.values())

    def day_entries(self, owner_id: str, day: dt.date) -> list[TimeInterval]:
        return [e for e in self._index.values() if e.owner_id == owner_id and e.date == day]

    # === Versioning ===

    def version(self, owner_id: str, day: dt.date) -> str:
        """Content hash of one owner-day."""
        digest = hashlib.sha256(f"{owner_id}|{day.isoformat()}".encode())
        for entry in sorted(self.day_entries(owner_id, day), key=lambda e: e.id):
            digest.update(entry.model_dump_json().encode())
        return digest.hexdigest()

    def token_for(self, days: Iterable[OwnerDay]) -> str:
        """Combined version of several owner-days."""
        digest = hashlib.sha256()
        for owner_id, day in sorted(set(days)):
            digest.update(self.version(owner_id, day).encode())
        return digest.hexdigest()

    def affected_days(self, action: RepairAction) -> list[OwnerDay]:
        """Owner-days an action reads or writes, sorted."""
        p = action.payload
        ids = list(p.get("entry_ids") or [])
        for key in ("entry_id", "previous_entry_id", "next_entry_id"):
            if p.get(key):
                ids.append(p[key])

        days: set[OwnerDay] = set()
        for entry_id in ids:
            entry = self._index.get(entry_id)
            if entry is not None:
                days.add((entry.owner_id, entry.date))
        if action.type == "fill_gap" and p.get("owner_id") and p.get("date"):
            days.add((p["owner_id"], dt.date.fromisoformat(str(p["date"]))))
        return sorted(days)

    def action_token(self, action: RepairAction) -> str:
        """Token to pass to RepairEngine.apply_guarded for ``action``."""
        return self.token_for(self.affected_days(action))

    # === Derivation ===

    def with_entries(self, entries: Iterable[TimeInterval]) -> EntryArena:
        return EntryArena(entries)

    def with_days_replaced(
        self, days: Iterable[OwnerDay], entries: Iterable[TimeInterval],
    ) -> EntryArena:
        """Replace every entry of ``days`` by the ``entries`` belonging to them."""
        days = set(days)
        kept = [e for e in self._index.values() if (e.owner_id, e.date) not in days]
        incoming = [e for e in entries if (e.owner_id, e.date) in days]
        return EntryArena([*kept, *incoming])


class RepairCoordinator:
    """Serializes guarded repairs per owner-day over a shared arena.

    Repairs on different owner-days run concurrently; repairs on the same
    owner-day queue on that day's lock and the later one fails with
    StaleEntryCollectionError if its token was read before the earlier one
    committed.
    """

    def __init__(self, engine: RepairEngine, arena: EntryArena) -> None:
        self._engine = engine
        self._arena = arena
        self._arena_lock = threading.Lock()
        self._day_locks: dict[OwnerDay, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    @property
    def arena(self) -> EntryArena:
        with self._arena_lock:
            return self._arena

    def token(self, action: RepairAction) -> str:
        return self.arena.action_token(action)

    def _lock_for(self, day: OwnerDay) -> threading.Lock:
        with self._registry_lock:
            return self._day_locks.setdefault(day, threading.Lock())

    def apply(self, action: RepairAction, actor: str, expected_token: str) -> RepairOutcome:
        """Apply ``action`` if its owner-days still match ``expected_token``."""
        days = self.arena.affected_days(action)
        # Fixed acquisition order prevents deadlocks between multi-day actions
        locks = [self._lock_for(day) for day in days]
        for lock in locks:
            lock.acquire()
        try:
            snapshot = self.arena
            new_arena, outcome = self._engine.apply_guarded(
                action, snapshot, actor, expected_token,
            )
            if outcome.applied:
                with self._arena_lock:
                    self._arena = self._arena.with_days_replaced(days, new_arena)
                logger.debug("Committed %s on %s", action.type, days)
            return outcome
        finally:
            for lock in reversed(locks):
                lock.release()

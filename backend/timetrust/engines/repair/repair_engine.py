"""Repair Engine — applies a RepairAction to an entry collection.

Pure: the input collection is never modified. Every application returns a
RepairOutcome holding the new collection plus the change-log rows written.
An action whose target entry is absent, immutable (locked or approved) or
no longer matches the proposal is a logged no-op returning the input
unchanged.

``apply_guarded`` adds optimistic concurrency on top of an EntryArena: the
caller passes the version token it read, and a changed owner-day raises
StaleEntryCollectionError instead of silently overwriting another repair.
"""

from __future__ import annotations

import datetime as dt
import logging
from collections.abc import Callable, Sequence
from typing import Any
from uuid import uuid4

from timetrust.engines.intervals import (
    entry_bounds,
    intervals_overlap,
    is_parseable,
    parse_clock,
)
from timetrust.engines.repair.arena import EntryArena
from timetrust.exceptions import StaleEntryCollectionError, TimeParseError
from timetrust.models.entry import AuditMetadata, ChangeLogEntry, TimeInterval
from timetrust.models.repair import RepairAction, RepairOutcome

logger = logging.getLogger(__name__)

REPAIR_DEVICE = "repair-mode"
REPAIR_REASON = "repair"

# Fields a repair may change; owner and date are fixed so an entry never
# moves to another owner-day
EDITABLE_FIELDS = frozenset({
    "start_time",
    "end_time",
    "project_id",
    "task_id",
    "phase_id",
    "billable",
    "notes",
    "tags",
})
TIME_FIELDS = frozenset({"start_time", "end_time"})


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def _new_entry_id() -> str:
    return f"entry-{uuid4().hex[:12]}"


def _logged_fields(entry: TimeInterval) -> dict:
    """Snapshot written to the change log when an entry is created or removed."""
    return {
        "owner_id": entry.owner_id,
        "date": entry.date.isoformat(),
        "start_time": entry.start_time,
        "end_time": entry.end_time,
        "duration": entry.duration,
        "project_id": entry.project_id,
        "task_id": entry.task_id,
    }


class RepairEngine:
    """Applies fill-gap, update, delete, split and batch-update actions."""

    def __init__(
        self,
        clock: Callable[[], dt.datetime] = _utcnow,
        id_factory: Callable[[], str] = _new_entry_id,
    ) -> None:
        self._clock = clock
        self._new_id = id_factory
        self._handlers: dict[str, Callable[..., RepairOutcome]] = {
            "fill_gap": self._fill_gap,
            "update_field": self._update_field,
            "delete_entry": self._delete_entry,
            "split_entry": self._split_entry,
            "batch_update": self._batch_update,
        }

    def apply(
        self,
        action: RepairAction,
        entries: Sequence[TimeInterval],
        actor: str,
    ) -> RepairOutcome:
        """Apply ``action`` to ``entries`` on behalf of ``actor``."""
        entries = list(entries)
        handler = self._handlers.get(action.type)
        if handler is None:
            return self._noop(entries, f"unsupported action type {action.type}")
        outcome = handler(action, entries, actor)
        if outcome.applied:
            logger.info(
                "Applied %s by %s: touched=%s created=%s deleted=%s",
                action.type,
                actor,
                outcome.touched_entry_ids,
                outcome.created_entry_ids,
                outcome.deleted_entry_ids,
            )
        return outcome

    def apply_guarded(
        self,
        action: RepairAction,
        arena: EntryArena,
        actor: str,
        expected_token: str,
    ) -> tuple[EntryArena, RepairOutcome]:
        """Apply ``action`` only if its owner-days still match ``expected_token``.

        Returns the new arena with the outcome. Raises
        StaleEntryCollectionError when the affected owner-days changed since
        the caller obtained the token via ``arena.action_token(action)``.
        """
        days = arena.affected_days(action)
        actual = arena.token_for(days)
        if actual != expected_token:
            owner_id, day = days[0] if days else ("", None)
            raise StaleEntryCollectionError(
                owner_id, day.isoformat() if day else "", expected_token, actual,
            )
        outcome = self.apply(action, arena.entries(), actor)
        if not outcome.applied:
            return arena, outcome
        return arena.with_entries(outcome.entries), outcome

    # === Handlers ===

    def _fill_gap(
        self, action: RepairAction, entries: list[TimeInterval], actor: str,
    ) -> RepairOutcome:
        p = action.payload
        by_id = {e.id: e for e in entries}
        for neighbour in ("previous_entry_id", "next_entry_id"):
            if p.get(neighbour) and p[neighbour] not in by_id:
                return self._noop(entries, f"{neighbour} {p[neighbour]} no longer exists")

        try:
            day = dt.date.fromisoformat(str(p["date"]))
            start, end = parse_clock(p["start_time"]), parse_clock(p["end_time"])
        except (KeyError, ValueError) as e:
            return self._noop(entries, f"invalid fill_gap payload: {e}")
        if end <= start:
            return self._noop(entries, "gap window is empty")

        owner_id = p.get("owner_id") or (entries[0].owner_id if entries else "unknown")
        for e in entries:
            if e.owner_id == owner_id and e.date == day and is_parseable(e):
                if intervals_overlap(start, end, *entry_bounds(e)):
                    return self._noop(entries, f"gap already covered by {e.id}")

        new_entry = TimeInterval(
            id=self._new_id(),
            tenant_id=p.get("tenant_id") or "default-tenant",
            owner_id=owner_id,
            project_id=p["project_id"],
            task_id=p.get("task_id"),
            date=day,
            start_time=p["start_time"],
            end_time=p["end_time"],
            billable=True,
            audit=AuditMetadata(created_by=actor, created_at=self._clock(), device=REPAIR_DEVICE),
        )
        return RepairOutcome(
            entries=[*entries, new_entry],
            applied=True,
            created_entry_ids=[new_entry.id],
            change_log=[(new_entry.id, self._audit_row(actor, {}, _logged_fields(new_entry)))],
        )

    def _update_field(
        self, action: RepairAction, entries: list[TimeInterval], actor: str,
    ) -> RepairOutcome:
        entry_id = action.payload.get("entry_id")
        changes = action.payload.get("changes") or {}
        if not changes:
            return self._noop(entries, "no field changes given")
        target = self._editable(entries, entry_id)
        if target is None:
            return self._noop(entries, f"entry {entry_id} is absent or immutable")

        updated, row = self._edit(target, changes, actor)
        if updated is None:
            return self._noop(entries, f"invalid changes for {entry_id}: {sorted(changes)}")
        return RepairOutcome(
            entries=[updated if e.id == entry_id else e for e in entries],
            applied=True,
            touched_entry_ids=[entry_id],
            change_log=[(entry_id, row)],
        )

    def _delete_entry(
        self, action: RepairAction, entries: list[TimeInterval], actor: str,
    ) -> RepairOutcome:
        entry_id = action.payload.get("entry_id")
        target = self._editable(entries, entry_id)
        if target is None:
            return self._noop(entries, f"entry {entry_id} is absent or immutable")
        return RepairOutcome(
            entries=[e for e in entries if e.id != entry_id],
            applied=True,
            deleted_entry_ids=[entry_id],
            change_log=[(entry_id, self._audit_row(actor, _logged_fields(target), {}))],
        )

    def _split_entry(
        self, action: RepairAction, entries: list[TimeInterval], actor: str,
    ) -> RepairOutcome:
        """Split at ``split_at``; with ``split_end`` the window between is dropped."""
        entry_id = action.payload.get("entry_id")
        target = self._editable(entries, entry_id)
        if target is None or not is_parseable(target):
            return self._noop(entries, f"entry {entry_id} is absent, immutable or unreadable")

        split_at = action.payload.get("split_at")
        split_end = action.payload.get("split_end") or split_at
        try:
            cut, resume = parse_clock(split_at), parse_clock(split_end)
        except TimeParseError as e:
            return self._noop(entries, str(e))
        start, end = entry_bounds(target)
        if not start < cut <= resume < end:
            return self._noop(entries, f"split {split_at}-{split_end} outside {entry_id}")

        now = self._clock()
        first = target.with_changes(
            end_time=split_at,
            duration=None,
            audit=target.audit.model_copy(update={"updated_by": actor, "updated_at": now}),
        )
        row = ChangeLogEntry(
            timestamp=now,
            actor=actor,
            before={"end_time": target.end_time, "duration": target.duration},
            after={"end_time": first.end_time, "duration": first.duration},
            reason=REPAIR_REASON,
            device=REPAIR_DEVICE,
        )
        first = first.with_changes(change_log=[*target.change_log, row])
        second = target.with_changes(
            id=self._new_id(),
            start_time=split_end,
            duration=None,
            approval_status="draft",
            audit=AuditMetadata(created_by=actor, created_at=now, device=REPAIR_DEVICE),
            change_log=[],
        )

        result: list[TimeInterval] = []
        for e in entries:
            result.extend([first, second] if e.id == entry_id else [e])
        return RepairOutcome(
            entries=result,
            applied=True,
            touched_entry_ids=[entry_id],
            created_entry_ids=[second.id],
            change_log=[(entry_id, row)],
        )

    def _batch_update(
        self, action: RepairAction, entries: list[TimeInterval], actor: str,
    ) -> RepairOutcome:
        entry_ids = list(dict.fromkeys(action.payload.get("entry_ids") or []))
        changes = action.payload.get("changes") or {}
        if not entry_ids or not changes:
            return self._noop(entries, "batch_update needs entry_ids and changes")

        # All or nothing
        updated: dict[str, TimeInterval] = {}
        rows: list[tuple[str, ChangeLogEntry]] = []
        for entry_id in entry_ids:
            target = self._editable(entries, entry_id)
            if target is None:
                return self._noop(entries, f"entry {entry_id} is absent or immutable")
            new, row = self._edit(target, changes, actor)
            if new is None:
                return self._noop(entries, f"invalid changes for {entry_id}: {sorted(changes)}")
            updated[entry_id] = new
            rows.append((entry_id, row))

        return RepairOutcome(
            entries=[updated.get(e.id, e) for e in entries],
            applied=True,
            touched_entry_ids=entry_ids,
            change_log=rows,
        )

    # === Helpers ===

    @staticmethod
    def _editable(entries: list[TimeInterval], entry_id: Any) -> TimeInterval | None:
        target = next((e for e in entries if e.id == entry_id), None)
        if target is None or target.is_immutable:
            return None
        return target

    def _edit(
        self, target: TimeInterval, changes: dict[str, Any], actor: str,
    ) -> tuple[TimeInterval | None, ChangeLogEntry | None]:
        """Apply field changes to one entry, recording a change-log row."""
        if not changes.keys() <= EDITABLE_FIELDS:
            return None, None

        touched = dict(changes)
        if touched.keys() & TIME_FIELDS:
            touched["duration"] = None
        now = self._clock()
        updated = target.with_changes(
            **touched,
            audit=target.audit.model_copy(update={"updated_by": actor, "updated_at": now}),
        )
        if touched.keys() & TIME_FIELDS:
            if not is_parseable(updated):
                return None, None
            new_start, new_end = entry_bounds(updated)
            if new_end <= new_start:
                return None, None

        fields = sorted(touched)
        row = ChangeLogEntry(
            timestamp=now,
            actor=actor,
            before={f: getattr(target, f) for f in fields},
            after={f: getattr(updated, f) for f in fields},
            reason=REPAIR_REASON,
            device=REPAIR_DEVICE,
        )
        return updated.with_changes(change_log=[*target.change_log, row]), row

    def _audit_row(self, actor: str, before: dict, after: dict) -> ChangeLogEntry:
        return ChangeLogEntry(
            timestamp=self._clock(),
            actor=actor,
            before=before,
            after=after,
            reason=REPAIR_REASON,
            device=REPAIR_DEVICE,
        )

    @staticmethod
    def _noop(entries: list[TimeInterval], reason: str) -> RepairOutcome:
        logger.warning("Repair skipped: %s", reason)
        return RepairOutcome(entries=entries, applied=False, reason=reason)

"""Decision Store — append-only SQL sink for admin decisions and change logs.

Operates on the audit SQLModel tables using a caller-supplied session.
Rows are only ever inserted; ``load_log`` rebuilds a DecisionLog for the
explainer.
"""

from __future__ import annotations

from datetime import timezone
from typing import Sequence

from sqlmodel import Session, select

from timetrust.engines.insight.learning import DecisionLog
from timetrust.models.audit import AdminDecisionRecord, ChangeLogRecord
from timetrust.models.entry import ChangeLogEntry
from timetrust.models.insight import AdminDecision, DecisionContext
from timetrust.models.repair import RepairOutcome


def _change_log_record(entry_id: str, row: ChangeLogEntry) -> ChangeLogRecord:
    data = row.model_dump(mode="json")
    return ChangeLogRecord(
        entry_id=entry_id,
        actor=row.actor,
        reason=row.reason,
        device=row.device,
        before=data["before"],
        after=data["after"],
        changed_at=row.timestamp,
    )


class DecisionStore:
    """Persists AdminDecisions and change-log rows."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def record_decision(self, decision: AdminDecision) -> AdminDecisionRecord:
        """Append one decision."""
        ctx = decision.context
        record = AdminDecisionRecord(
            id=decision.id,
            rule_code=decision.rule_code,
            action_taken=decision.action_taken,
            insight_id=decision.insight_id,
            project_id=ctx.project_id,
            owner_id=ctx.owner_id,
            duration=ctx.duration,
            extra_context=dict(ctx.model_extra or {}),
            decided_at=decision.timestamp,
        )
        self.session.add(record)
        self.session.commit()
        self.session.refresh(record)
        return record

    def record_change_log(self, entry_id: str, row: ChangeLogEntry) -> ChangeLogRecord:
        """Append one change-log row of an entry."""
        record = _change_log_record(entry_id, row)
        self.session.add(record)
        self.session.commit()
        self.session.refresh(record)
        return record

    def record_outcome(self, outcome: RepairOutcome) -> list[ChangeLogRecord]:
        """Append every change-log row written by a repair in one transaction."""
        records = [_change_log_record(entry_id, row) for entry_id, row in outcome.change_log]
        self.session.add_all(records)
        self.session.commit()
        for record in records:
            self.session.refresh(record)
        return records

    def list_decisions(self, rule_code: str | None = None, limit: int = 500) -> Sequence[AdminDecisionRecord]:
        """Most recent decisions, oldest first."""
        statement = select(AdminDecisionRecord)
        if rule_code is not None:
            statement = statement.where(AdminDecisionRecord.rule_code == rule_code)
        statement = statement.order_by(AdminDecisionRecord.decided_at.desc()).limit(limit)  # type: ignore[union-attr]
        return list(reversed(self.session.exec(statement).all()))

    def load_log(self, rule_code: str | None = None, limit: int = 500) -> DecisionLog:
        """Rebuild a DecisionLog from the stored decisions."""
        decisions = []
        for record in self.list_decisions(rule_code, limit):
            decided_at = record.decided_at
            if decided_at.tzinfo is None:
                decided_at = decided_at.replace(tzinfo=timezone.utc)
            decisions.append(AdminDecision(
                id=record.id,
                rule_code=record.rule_code,
                action_taken=record.action_taken,
                timestamp=decided_at,
                insight_id=record.insight_id,
                context=DecisionContext(
                    project_id=record.project_id,
                    owner_id=record.owner_id,
                    duration=record.duration,
                    **(record.extra_context or {}),
                ),
            ))
        return DecisionLog(decisions)

    def change_log_for(self, entry_id: str) -> Sequence[ChangeLogRecord]:
        statement = (
            select(ChangeLogRecord)
            .where(ChangeLogRecord.entry_id == entry_id)
            .order_by(ChangeLogRecord.changed_at)  # type: ignore[arg-type]
        )
        return self.session.exec(statement).all()

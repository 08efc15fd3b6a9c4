"""Audit sink tables.

Includes: AdminDecisionRecord (SQL table), ChangeLogRecord (SQL table).
Both are append-only; rows are never updated.
"""

from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from sqlmodel import JSON, Column, SQLModel
from sqlmodel import Field as SQLField


class AdminDecisionRecord(SQLModel, table=True):
    """An administrator decision persisted to the database."""

    __tablename__ = "admin_decision"

    id: str = SQLField(default_factory=lambda: str(uuid4()), primary_key=True)
    rule_code: str = SQLField(index=True)
    action_taken: str
    insight_id: str | None = None

    # Context
    project_id: str | None = SQLField(default=None, index=True)
    owner_id: str | None = SQLField(default=None, index=True)
    duration: float | None = None
    extra_context: dict = SQLField(default_factory=dict, sa_column=Column(JSON))

    decided_at: datetime = SQLField(default_factory=lambda: datetime.now(timezone.utc))


class ChangeLogRecord(SQLModel, table=True):
    """One change-log row of an entry, mirrored from a repair or manual edit."""

    __tablename__ = "entry_change_log"

    id: str = SQLField(default_factory=lambda: str(uuid4()), primary_key=True)
    entry_id: str = SQLField(index=True)
    actor: str
    reason: str = ""
    device: str | None = None
    before: dict = SQLField(default_factory=dict, sa_column=Column(JSON))
    after: dict = SQLField(default_factory=dict, sa_column=Column(JSON))
    changed_at: datetime = SQLField(default_factory=lambda: datetime.now(timezone.utc))

"""Insight and decision models for the decision-explanation layer.

Includes: Insight (explanation + decision menu), DecisionAction,
AdminDecision (append-only log row), LearningData.
"""

from __future__ import annotations

import datetime as dt
from typing import Any, Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from timetrust.models.anomaly import FindingSeverity

# === Type aliases ===

InsightKind = Literal["validation", "anomaly"]

DecisionActionKind = Literal["accept", "fix", "adjust", "notify", "disable", "split", "manual"]

DecisionPayloadType = Literal[
    "confirm",
    "update_entry",
    "split_entry",
    "send_notification",
    "disable_rule",
    "adjust_rule",
    "manual_review",
]


# === Explanation ===


class ComparisonValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    current: str | float
    typical: str | float
    deviation_pct: float | None = None
    unit: str = ""


class Explanation(BaseModel):
    model_config = ConfigDict(frozen=True)

    reason: str
    comparisons: list[ComparisonValue] = Field(default_factory=list)
    evidence: list[str] = Field(default_factory=list)
    context: str = ""


# === Decision menu ===


class DecisionPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: DecisionPayloadType
    params: dict[str, Any] = Field(default_factory=dict)


class DecisionAction(BaseModel):
    """One choice offered to an administrator for an insight."""

    model_config = ConfigDict(frozen=True)

    id: str
    label: str
    description: str = ""
    kind: DecisionActionKind
    consequence: str = ""
    action: DecisionPayload
    learn_from_this: bool = False


class DecisionMode(BaseModel):
    model_config = ConfigDict(frozen=True)

    question: str
    actions: list[DecisionAction] = Field(default_factory=list)
    default_action_id: str | None = None
    learning_note: str | None = None

    def get_action(self, action_id: str) -> DecisionAction | None:
        return next((a for a in self.actions if a.id == action_id), None)


# === Decision log ===


class DecisionContext(BaseModel):
    model_config = ConfigDict(frozen=True, extra="allow")

    project_id: str | None = None
    owner_id: str | None = None
    duration: float | None = None


class AdminDecision(BaseModel):
    """An administrator's response to an insight. Never mutated."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    rule_code: str
    action_taken: str  # DecisionActionKind of the chosen action, e.g. "accept"
    timestamp: dt.datetime = Field(default_factory=lambda: dt.datetime.now(dt.timezone.utc))
    insight_id: str | None = None
    context: DecisionContext = Field(default_factory=DecisionContext)


class LearningData(BaseModel):
    model_config = ConfigDict(frozen=True)

    previous_decisions: list[AdminDecision] = Field(default_factory=list)
    suggested_action: str | None = None
    confidence: float | None = None
    acceptance_rate: float | None = None


# === Insight ===


class Insight(BaseModel):
    """An explained, actionable presentation of a validation/anomaly finding."""

    model_config = ConfigDict(frozen=True)

    id: str
    kind: InsightKind
    rule_code: str
    severity: FindingSeverity
    title: str
    short_message: str
    explanation: Explanation
    decision_mode: DecisionMode
    learning: LearningData = Field(default_factory=LearningData)

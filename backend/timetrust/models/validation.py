"""Validation result models shared by the rule validator and the insight layer."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

# === Type aliases ===

ValidationSeverity = Literal["hard", "soft"]

QuickFixActionType = Literal[
    "update_field",
    "split_entry",
    "move_entry",
    "delete_entry",
    "confirm",
    "fill_gap",
]


# === Quick fixes ===


class QuickFixAction(BaseModel):
    """Typed, parameterized edit proposal attached to a quick fix."""

    model_config = ConfigDict(frozen=True)

    type: QuickFixActionType
    field: str | None = None
    value: Any = None
    entry_ids: list[str] = Field(default_factory=list)


class QuickFix(BaseModel):
    """One-click correction offered alongside a validation result."""

    model_config = ConfigDict(frozen=True)

    id: str
    label: str
    description: str = ""
    action: QuickFixAction


# === Results ===


class ValidationResult(BaseModel):
    """Outcome of one rule against one entry."""

    model_config = ConfigDict(frozen=True)

    severity: ValidationSeverity
    code: str
    message: str
    field: str | None = None
    explanation: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    quick_fixes: list[QuickFix] = Field(default_factory=list)

    @property
    def blocking(self) -> bool:
        return self.severity == "hard"


class ValidationSummary(BaseModel):
    """Hard/soft split of a validator run."""

    hard_errors: list[ValidationResult] = Field(default_factory=list)
    soft_warnings: list[ValidationResult] = Field(default_factory=list)

    @property
    def has_hard_errors(self) -> bool:
        return bool(self.hard_errors)

    @property
    def has_soft_warnings(self) -> bool:
        return bool(self.soft_warnings)

    @property
    def can_save(self) -> bool:
        return not self.hard_errors

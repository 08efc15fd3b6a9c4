"""Rule validation engine — hard and soft rules evaluated per entry."""

from timetrust.engines.validation.rule_validator import (
    RuleValidator,
    ensure_persistable,
    summarize,
)

__all__ = ["RuleValidator", "ensure_persistable", "summarize"]

"""Decision learning over the append-only AdminDecision log."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Iterator

from timetrust.models.entry import TimeInterval
from timetrust.models.insight import AdminDecision, LearningData

RELEVANT_WINDOW = 20
RATE_WINDOW = 10
MIN_DECISIONS = 3
SUGGEST_CONFIDENCE = 0.7
RELAX_RATE = 0.8
TIGHTEN_RATE = 0.2
DEFAULT_ACCEPT_RATE = 0.7
SIMILAR_DURATION_HOURS = 1.0


class DecisionLog:
    """Immutable, append-only sequence of AdminDecisions.

    ``record`` returns a new log; existing logs (and the insights built from
    them) never change.
    """

    __slots__ = ("_decisions",)

    def __init__(self, decisions: Iterable[AdminDecision] = ()) -> None:
        self._decisions: tuple[AdminDecision, ...] = tuple(decisions)

    def record(self, decision: AdminDecision) -> DecisionLog:
        return DecisionLog((*self._decisions, decision))

    @property
    def decisions(self) -> tuple[AdminDecision, ...]:
        return self._decisions

    def for_rule(self, rule_code: str) -> list[AdminDecision]:
        return [d for d in self._decisions if d.rule_code == rule_code]

    def __len__(self) -> int:
        return len(self._decisions)

    def __iter__(self) -> Iterator[AdminDecision]:
        return iter(self._decisions)


def _is_relevant(decision: AdminDecision, entry: TimeInterval) -> bool:
    ctx = decision.context
    if ctx.project_id is not None and ctx.project_id == entry.project_id:
        return True
    if ctx.owner_id is not None and ctx.owner_id == entry.owner_id:
        return True
    duration = ctx.duration if ctx.duration is not None else 0.0
    return abs(duration - entry.duration) < SIMILAR_DURATION_HOURS


def acceptance_rate(log: DecisionLog, rule_code: str) -> float | None:
    """Share of "accept" among the last decisions on ``rule_code``.

    None when fewer than three decisions exist.
    """
    recent = log.for_rule(rule_code)[-RATE_WINDOW:]
    if len(recent) < MIN_DECISIONS:
        return None
    return sum(1 for d in recent if d.action_taken == "accept") / len(recent)


def learning_note(rate: float | None, rule_code: str) -> str | None:
    if rate is None:
        return None
    if rate >= RELAX_RATE:
        return (
            f"You accept {round(rate * 100)}% of {rule_code} findings. "
            "Consider relaxing this rule."
        )
    if rate <= TIGHTEN_RATE:
        return (
            f"You almost always correct {rule_code} findings. "
            "Consider tightening this rule."
        )
    return None


def analyze_previous_decisions(
    log: DecisionLog, rule_code: str, entry: TimeInterval,
) -> LearningData:
    """Suggest an action from decisions on similar findings.

    Similar means the same rule code and the same project, the same owner or
    a duration within one hour of the entry's.
    """
    relevant = [d for d in log.for_rule(rule_code) if _is_relevant(d, entry)][-RELEVANT_WINDOW:]
    rate = acceptance_rate(log, rule_code)
    if len(relevant) < MIN_DECISIONS:
        return LearningData(previous_decisions=relevant, acceptance_rate=rate)

    action, count = Counter(d.action_taken for d in relevant).most_common(1)[0]
    confidence = count / len(relevant)
    return LearningData(
        previous_decisions=relevant,
        suggested_action=action if confidence >= SUGGEST_CONFIDENCE else None,
        confidence=confidence,
        acceptance_rate=rate,
    )

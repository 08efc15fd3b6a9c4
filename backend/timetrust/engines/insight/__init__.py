"""Decision-explanation layer — insights, decision menus and learning."""

from timetrust.engines.insight.explainer import DecisionExplainer
from timetrust.engines.insight.learning import DecisionLog
from timetrust.engines.insight.registry import InsightContext, InsightRegistry

__all__ = ["DecisionExplainer", "DecisionLog", "InsightContext", "InsightRegistry"]

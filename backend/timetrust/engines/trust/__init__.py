"""Trust scoring engine — plausibility from five weighted factors."""

from timetrust.engines.trust.trust_scorer import TrustScorer

__all__ = ["TrustScorer"]

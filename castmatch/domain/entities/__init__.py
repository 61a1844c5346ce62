"""Domain entities and value objects."""

from .evaluation import Decision, EvaluationResult, MatchResult, Measurements, RuleScores, ScoreBreakdown
from .reference_group import GenderTag, ReferenceGroup
from .submission import Submission

__all__ = [
    "Decision",
    "EvaluationResult",
    "GenderTag",
    "MatchResult",
    "Measurements",
    "ReferenceGroup",
    "RuleScores",
    "ScoreBreakdown",
    "Submission",
]

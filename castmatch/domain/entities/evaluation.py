"""
Value objects produced while evaluating a submission.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class Decision(str, Enum):
    """Outcome of an evaluation."""

    PROCEED = "proceed"
    REVIEW = "review"
    REJECT = "reject"


@dataclass(frozen=True)
class Measurements:
    """Bust/waist/hip triple parsed from a free-form measurement string."""

    bust: float
    waist: float
    hip: float


@dataclass
class RuleScores:
    """Deterministic sub-scores from height and measurements."""

    height_score: float
    measurement_score: float
    reasons: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class MatchResult:
    """Best reference match for a submission's photos."""

    similarity: float
    label: str
    note: str
    photos_embedded: int = 0
    photos_failed: int = 0


@dataclass(frozen=True)
class ScoreBreakdown:
    """Every term that went into a confidence value."""

    height: float
    measurement: float
    face: float
    photo_bonus: float
    tie_break: float
    has_photos: bool


@dataclass
class EvaluationResult:
    """
    Result of one evaluation.

    Attributes:
        decision: proceed / review / reject.
        confidence: Blended score in [0, 1].
        reason: Human-readable reason trail.
        details: Fixed-format summary of the input fields.
        face_similarity: Normalized similarity to the best reference, in [0, 1].
        face_cluster: Label of the best reference group, or "none".
        breakdown: Individual blend terms, kept for tracing.
    """

    decision: Decision
    confidence: float
    reason: str
    details: str
    face_similarity: float
    face_cluster: str
    breakdown: Optional[ScoreBreakdown] = None

    def to_response(self) -> dict:
        """Return the public response payload."""
        return {
            "decision": self.decision.value,
            "confidence": self.confidence,
            "reason": self.reason,
            "details": self.details,
            "face_similarity": round(self.face_similarity, 3),
            "face_cluster": self.face_cluster,
        }

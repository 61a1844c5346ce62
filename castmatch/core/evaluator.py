"""
Evaluation orchestrator.

Combines rule scores and reference similarity into one confidence value:

    confidence = 0.40 * measurement + 0.25 * height + 0.30 * face
               + 0.05 * (0.6 if photos else 0) + photo_bonus + tie_break

clamped to [0, 1], then mapped to a decision:

    >= 0.70 proceed, >= 0.45 review, otherwise reject

The tie-break term is derived from a hash of the photo URLs, so the same
photo set always gets the same value (at most 0.0099).

Example:
    >>> evaluator = Evaluator(RuleScorer(), matcher, cache)
    >>> result = await evaluator.evaluate(Submission(photos=[url1, url2, url3]))
    >>> result.decision
    <Decision.PROCEED: 'proceed'>
"""

from __future__ import annotations

import hashlib
from typing import Optional, Sequence

from castmatch.domain.entities import (
    Decision,
    EvaluationResult,
    GenderTag,
    ScoreBreakdown,
    Submission,
)
from castmatch.utils.logger import get_logger

from .matcher import SimilarityMatcher
from .reference_cache import ReferenceCache
from .scoring import RuleScorer, clamp

logger = get_logger(__name__)

# Blend weights
MEASUREMENT_WEIGHT = 0.40
HEIGHT_WEIGHT = 0.25
FACE_WEIGHT = 0.30
PHOTO_PRESENCE_WEIGHT = 0.05
PHOTO_PRESENCE_VALUE = 0.6

# Photo count bonus
PHOTO_BONUS_BASELINE = 2
PHOTO_BONUS_STEP = 0.04
PHOTO_BONUS_MAX = 0.12

# Decision thresholds
PROCEED_THRESHOLD = 0.70
REVIEW_THRESHOLD = 0.45


def resolve_gender(raw: Optional[str]) -> GenderTag:
    """Anything starting with "m" (any case) is male; everything else is female."""
    return GenderTag.MALE if (raw or "female").strip().lower().startswith("m") else GenderTag.FEMALE


def photo_bonus(photo_count: int) -> float:
    """+0.04 per photo beyond two, capped at +0.12."""
    return clamp((photo_count - PHOTO_BONUS_BASELINE) * PHOTO_BONUS_STEP, 0.0, PHOTO_BONUS_MAX)


def tie_break(photos: Sequence[str]) -> float:
    """Deterministic perturbation in [0, 0.0099] from a SHA-256 of the photo URLs."""
    digest = hashlib.sha256("|".join(photos).encode("utf-8")).hexdigest()
    return (int(digest[:6], 16) % 100) / 10000


def decide(confidence: float) -> Decision:
    """Map a confidence value to a decision."""
    if confidence >= PROCEED_THRESHOLD:
        return Decision.PROCEED
    if confidence >= REVIEW_THRESHOLD:
        return Decision.REVIEW
    return Decision.REJECT


def photo_reason(photo_count: int, bonus: float) -> str:
    if bonus > 0:
        return f"{photo_count} photos provided (+{bonus:.2f})"
    return f"limited photo set ({photo_count})"


def blend(breakdown: ScoreBreakdown) -> float:
    """Combine the score terms into a clamped confidence."""
    confidence = (
        MEASUREMENT_WEIGHT * breakdown.measurement
        + HEIGHT_WEIGHT * breakdown.height
        + FACE_WEIGHT * breakdown.face
        + PHOTO_PRESENCE_WEIGHT * (PHOTO_PRESENCE_VALUE if breakdown.has_photos else 0.0)
        + breakdown.photo_bonus
        + breakdown.tie_break
    )
    return clamp(confidence)


class Evaluator:
    """
    Single entry point for scoring a submission.

    Attributes:
        rule_scorer: Height / measurement scorer.
        matcher: Reference similarity matcher.
        cache: Reference cache read on every evaluation.
    """

    def __init__(self, rule_scorer: RuleScorer, matcher: SimilarityMatcher, cache: ReferenceCache):
        self.rule_scorer = rule_scorer
        self.matcher = matcher
        self.cache = cache

    async def evaluate(self, submission: Submission) -> EvaluationResult:
        """
        Evaluate one submission.

        Degraded enrichment (empty cache, photos that cannot be embedded)
        yields a neutral face score, never an error.

        Args:
            submission: Validated submission.

        Returns:
            EvaluationResult with decision, confidence and reason trail.
        """
        gender = resolve_gender(submission.gender)
        rules = self.rule_scorer.score(submission.height_cm, submission.measurements, gender)

        # Read the snapshot once so the whole evaluation sees one group set
        groups = self.cache.groups
        match = await self.matcher.match(submission.photos, groups)

        photo_count = len(submission.photos)
        breakdown = ScoreBreakdown(
            height=rules.height_score,
            measurement=rules.measurement_score,
            face=match.similarity,
            photo_bonus=photo_bonus(photo_count),
            tie_break=tie_break(submission.photos),
            has_photos=photo_count > 0,
        )
        confidence = blend(breakdown)
        decision = decide(confidence)

        reasons = list(rules.reasons)
        reasons.append(photo_reason(photo_count, breakdown.photo_bonus))
        reasons.append(f"{match.note} ({match.label})")

        logger.info(
            f"Evaluated {photo_count} photos ({gender.value}): {decision.value} "
            f"conf={confidence:.3f} h={breakdown.height:.2f} m={breakdown.measurement:.2f} "
            f"face={breakdown.face:.3f} [{match.label}]"
        )

        return EvaluationResult(
            decision=decision,
            confidence=confidence,
            reason="; ".join(reasons),
            details=submission.details(),
            face_similarity=match.similarity,
            face_cluster=match.label,
            breakdown=breakdown,
        )

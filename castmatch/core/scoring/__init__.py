# Scoring Package
"""
Vector math and rule-based scoring.

Provides:
- cosine_similarity / mean_vector / to_unit_score: embedding comparison
- CentroidAccumulator: streaming centroid construction
- RuleScorer: height and measurement sub-scores

Example:
    >>> from castmatch.core.scoring import cosine_similarity, RuleScorer
    >>>
    >>> sim = cosine_similarity(emb_a, emb_b)
    >>> scores = RuleScorer().score(177, "82-60-88", GenderTag.FEMALE)
"""

from .rules import (
    DEFAULT_PROFILES,
    PreferenceProfile,
    RuleScorer,
    height_score,
    measurement_score,
    parse_height,
    parse_measurements,
)
from .similarity import CentroidAccumulator, clamp, cosine_similarity, mean_vector, to_unit_score

__all__ = [
    # Vector math
    "CentroidAccumulator",
    "clamp",
    "cosine_similarity",
    "mean_vector",
    "to_unit_score",
    # Rule scoring
    "DEFAULT_PROFILES",
    "PreferenceProfile",
    "RuleScorer",
    "height_score",
    "measurement_score",
    "parse_height",
    "parse_measurements",
]

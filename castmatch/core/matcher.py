"""Similarity matching of submission photos against reference centroids.

Embeds up to a fixed number of a submission's photos, averages them and
returns the best cached centroid by cosine similarity, mapped onto
[0, 1]. An empty cache or a photo set that cannot be embedded yields a
neutral 0.5 with label "none" rather than an error.
"""

import asyncio
from typing import Sequence

import numpy as np

from castmatch.domain.entities import MatchResult, ReferenceGroup
from castmatch.utils.exceptions import EmbeddingError
from castmatch.utils.logger import get_logger

from .embeddings import EmbeddingProvider
from .scoring import cosine_similarity, mean_vector, to_unit_score

logger = get_logger(__name__)

NEUTRAL_SIMILARITY = 0.5
NO_MATCH_LABEL = "none"

# Reason thresholds on the normalized score
STRONG_MATCH = 0.70
PARTIAL_MATCH = 0.55


def similarity_reason(score: float) -> str:
    """Categorical phrase for a normalized similarity score."""
    if score >= STRONG_MATCH:
        return "face matches reference look"
    if score >= PARTIAL_MATCH:
        return "some similarity to reference look"
    return "low similarity to reference look"


def best_match(vector: np.ndarray, groups: Sequence[ReferenceGroup]) -> tuple[float, str]:
    """Find the group with the strictly greatest cosine similarity.

    Ties keep the first group in iteration order.

    Args:
        vector: Submission vector
        groups: Non-empty reference groups

    Returns:
        (raw cosine similarity, group label)
    """
    best_sim = None
    best_label = NO_MATCH_LABEL
    for group in groups:
        sim = cosine_similarity(vector, group.centroid)
        if best_sim is None or sim > best_sim:
            best_sim = sim
            best_label = group.label
    return best_sim, best_label


class SimilarityMatcher:
    """Matches a submission's photos against cached reference centroids."""

    def __init__(self, provider: EmbeddingProvider, max_photos: int = 5):
        """Initialize the matcher.

        Args:
            provider: Embedding provider used for submission photos
            max_photos: Photos embedded per submission; the rest are ignored
        """
        self.provider = provider
        self.max_photos = max_photos

    async def embed_photos(self, photo_urls: Sequence[str]) -> tuple[list[np.ndarray], list[str]]:
        """Embed the first `max_photos` URLs concurrently.

        Returns:
            (successful vectors in photo order, URLs that failed)
        """
        urls = list(photo_urls)[: self.max_photos]
        outcomes = await asyncio.gather(
            *(self.provider.embed_url(url) for url in urls),
            return_exceptions=True,
        )

        vectors: list[np.ndarray] = []
        failed: list[str] = []
        for url, outcome in zip(urls, outcomes):
            if isinstance(outcome, EmbeddingError):
                logger.warning(f"app_embed_fail {url}: {outcome}")
                failed.append(url)
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                vectors.append(outcome)
        return vectors, failed

    async def match(self, photo_urls: Sequence[str], groups: Sequence[ReferenceGroup]) -> MatchResult:
        """Score the submission photos against the reference groups.

        Args:
            photo_urls: Submission photo URLs
            groups: Snapshot of the reference cache

        Returns:
            MatchResult with similarity in [0, 1], the best label and a reason note
        """
        if not groups:
            return MatchResult(
                similarity=NEUTRAL_SIMILARITY,
                label=NO_MATCH_LABEL,
                note="no reference faces loaded",
            )

        vectors, failed = await self.embed_photos(photo_urls)
        if not vectors:
            return MatchResult(
                similarity=NEUTRAL_SIMILARITY,
                label=NO_MATCH_LABEL,
                note="no valid photos to analyze",
                photos_failed=len(failed),
            )

        submission_vector = mean_vector(vectors)
        raw, label = best_match(submission_vector, groups)
        score = to_unit_score(raw)

        logger.debug(f"Best reference {label!r}: cosine={raw:.4f}, score={score:.4f}")
        return MatchResult(
            similarity=score,
            label=label,
            note=similarity_reason(score),
            photos_embedded=len(vectors),
            photos_failed=len(failed),
        )

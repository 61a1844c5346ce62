"""
Vector math for embedding comparison.

Provides cosine similarity, vector averaging and score normalization
using numpy.

Example:
    >>> from castmatch.core.scoring.similarity import cosine_similarity
    >>> sim = cosine_similarity(embedding_a, embedding_b)
    >>> print(f"Similarity: {sim:.4f}")
"""

from __future__ import annotations

from typing import List, Sequence, Union

import numpy as np

# Type alias for vectors
VectorLike = Union[np.ndarray, List[float]]


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    """Clamp a value into [low, high]."""
    return max(low, min(high, value))


def cosine_similarity(
    vec_a: VectorLike,
    vec_b: VectorLike,
) -> float:
    """
    Compute cosine similarity between two vectors.

    Cosine similarity measures the angle between vectors, ranging from:
    - 1.0: Identical direction (most similar)
    - 0.0: Orthogonal (no similarity)
    - -1.0: Opposite direction (least similar)

    Vectors of different lengths are compared over their overlapping
    prefix. A zero-magnitude vector yields 0.

    Args:
        vec_a: First vector (numpy array or list).
        vec_b: Second vector (numpy array or list).

    Returns:
        Cosine similarity score in range [-1, 1].

    Example:
        >>> a = np.array([1.0, 0.0, 0.0])
        >>> b = np.array([1.0, 0.0, 0.0])
        >>> cosine_similarity(a, b)
        1.0

        >>> c = np.array([0.0, 1.0, 0.0])
        >>> cosine_similarity(a, c)
        0.0
    """
    a = np.asarray(vec_a, dtype=np.float64).ravel()
    b = np.asarray(vec_b, dtype=np.float64).ravel()

    length = min(a.shape[0], b.shape[0])
    a = a[:length]
    b = b[:length]

    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)

    # Handle zero vectors
    if norm_a == 0 or norm_b == 0:
        return 0.0

    similarity = np.dot(a, b) / (norm_a * norm_b)

    # Clip to [-1, 1] to handle floating point errors
    return float(np.clip(similarity, -1.0, 1.0))


def mean_vector(vectors: Sequence[VectorLike]) -> np.ndarray:
    """
    Dimension-wise mean of a set of vectors.

    Vectors of different lengths are truncated to the shortest one.

    Args:
        vectors: Non-empty sequence of 1-D vectors.

    Returns:
        Mean vector as float32.

    Raises:
        ValueError: If no vectors are given.
    """
    if not vectors:
        raise ValueError("Cannot average an empty set of vectors")

    arrays = [np.asarray(v, dtype=np.float64).ravel() for v in vectors]
    length = min(a.shape[0] for a in arrays)
    stacked = np.stack([a[:length] for a in arrays])

    return stacked.mean(axis=0).astype(np.float32)


def to_unit_score(cosine: float) -> float:
    """
    Map a cosine similarity in [-1, 1] onto [0, 1].

    Args:
        cosine: Raw cosine similarity.

    Returns:
        (cosine + 1) / 2, clamped to [0, 1].
    """
    return clamp((cosine + 1.0) / 2.0)


class CentroidAccumulator:
    """
    Running sum and count for building a centroid one vector at a time.

    Only the running sum is kept, so memory is O(vector length) no
    matter how many vectors are folded in. Sums are kept in float64.

    Example:
        >>> acc = CentroidAccumulator()
        >>> acc.add(np.array([1.0, 0.0]))
        >>> acc.add(np.array([0.0, 1.0]))
        >>> acc.centroid()
        array([0.5, 0.5], dtype=float32)
    """

    def __init__(self) -> None:
        self._sum: np.ndarray | None = None
        self.count = 0

    def add(self, vector: VectorLike) -> None:
        """Fold one vector into the running sum."""
        v = np.asarray(vector, dtype=np.float64).ravel()
        if self._sum is None:
            self._sum = np.zeros_like(v)
        elif v.shape != self._sum.shape:
            raise ValueError(
                f"Vector dimension mismatch: expected {self._sum.shape[0]}, got {v.shape[0]}"
            )
        self._sum += v
        self.count += 1

    def centroid(self) -> np.ndarray | None:
        """Return sum / count as float32, or None when nothing was added."""
        if self._sum is None or self.count == 0:
            return None
        return (self._sum / self.count).astype(np.float32)

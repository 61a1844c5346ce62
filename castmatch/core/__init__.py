"""Core components for CastMatch."""

from .embeddings import EmbeddingProvider, create_provider
from .evaluator import Evaluator, decide
from .matcher import SimilarityMatcher
from .reference_cache import BuildReport, CacheState, ReferenceCache, ReferenceCacheBuilder
from .scoring import RuleScorer

__all__ = [
    "BuildReport",
    "CacheState",
    "EmbeddingProvider",
    "Evaluator",
    "ReferenceCache",
    "ReferenceCacheBuilder",
    "RuleScorer",
    "SimilarityMatcher",
    "create_provider",
    "decide",
]

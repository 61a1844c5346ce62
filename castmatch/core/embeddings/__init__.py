"""Embedding provider and backends."""

from .hf_backend import HF_ROUTES, HuggingFaceInferenceBackend, to_vector
from .local_clip import LocalCLIPBackend
from .provider import EmbeddingProvider, build_backends, create_provider

__all__ = [
    "HF_ROUTES",
    "HuggingFaceInferenceBackend",
    "LocalCLIPBackend",
    "EmbeddingProvider",
    "build_backends",
    "create_provider",
    "to_vector",
]

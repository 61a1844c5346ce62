"""Abstract interfaces implemented by infrastructure and core components."""

from .embedding_backend import EmbeddingBackend
from .storage_interface import ReferenceStorage

__all__ = ["EmbeddingBackend", "ReferenceStorage"]

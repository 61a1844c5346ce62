"""
Abstract interface for embedding backends.
"""

from abc import ABC, abstractmethod

import numpy as np


class EmbeddingBackend(ABC):
    """
    Abstract base class for embedding backends.

    Each backend turns raw image bytes into one fixed-length vector.
    The embedding provider tries several backends in preference order.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the backend identifier used in logs."""
        pass

    @abstractmethod
    async def embed(self, image: bytes) -> np.ndarray:
        """
        Generate an embedding vector from image bytes.

        Args:
            image: Encoded image payload.

        Returns:
            1-D float32 numpy array.

        Raises:
            TransientBackendError: For server-side failures worth retrying.
            BackendRequestError: For failures that should skip this backend.
        """
        pass

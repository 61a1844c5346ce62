"""
Embedding provider with ordered backend fallback.

The provider holds an ordered list of backends. For each image it tries
them in turn and returns the first vector produced:

- A TransientBackendError (5xx, timeout) is retried on the same backend
  up to `max_attempts` times, sleeping `backoff_seconds * attempt`
  between tries.
- A BackendRequestError (auth, bad request, malformed response) skips
  to the next backend immediately.
- When every backend has failed, EmbeddingUnavailable is raised with the
  last error attached.

Vectors fetched by URL can be memoized for the lifetime of the process.

Example:
    >>> provider = EmbeddingProvider([pipeline_backend, models_backend], fetcher)
    >>> vector = await provider.embed_url("https://res.cloudinary.com/.../a.jpg")
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional, Sequence

import aiohttp
import numpy as np

from castmatch.domain.interfaces import EmbeddingBackend
from castmatch.infrastructure.http import ImageFetcher
from castmatch.utils.config import EmbeddingConfig
from castmatch.utils.exceptions import (
    BackendRequestError,
    EmbeddingUnavailable,
    ImageFetchError,
    TransientBackendError,
)
from castmatch.utils.logger import get_logger

from .hf_backend import HF_ROUTES, HuggingFaceInferenceBackend
from .local_clip import LocalCLIPBackend

logger = get_logger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class EmbeddingProvider:
    """
    Turns images into embedding vectors through a list of backends.

    Attributes:
        backends: Backends in preference order.
        fetcher: Downloads images for `embed_url`.
        max_attempts: Tries per backend on transient failures.
        backoff_seconds: Backoff base; the delay before retry n is base * n.
    """

    def __init__(
        self,
        backends: Sequence[EmbeddingBackend],
        fetcher: Optional[ImageFetcher] = None,
        max_attempts: int = 3,
        backoff_seconds: float = 0.4,
        memoize: bool = True,
        sleep: Sleep = asyncio.sleep,
    ):
        """
        Initialize the provider.

        Args:
            backends: Non-empty list of backends, tried in order.
            fetcher: Image fetcher (required for embed_url).
            max_attempts: Tries per backend on transient failures.
            backoff_seconds: Backoff base in seconds.
            memoize: Keep vectors per URL for the process lifetime.
            sleep: Coroutine used for backoff waits.

        Raises:
            ValueError: If no backends are given.
        """
        if not backends:
            raise ValueError("EmbeddingProvider needs at least one backend")

        self.backends = list(backends)
        self.fetcher = fetcher
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.memoize = memoize
        self._sleep = sleep
        self._memo: dict[str, np.ndarray] = {}

    @property
    def memo_size(self) -> int:
        """Number of memoized URLs."""
        return len(self._memo)

    def clear_memo(self) -> None:
        self._memo.clear()

    async def _try_backend(self, backend: EmbeddingBackend, image: bytes) -> np.ndarray:
        """Run one backend with retries on transient errors."""
        last_error: Optional[TransientBackendError] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                return await backend.embed(image)
            except TransientBackendError as e:
                last_error = e
                if attempt < self.max_attempts:
                    delay = self.backoff_seconds * attempt
                    logger.warning(
                        f"Backend {backend.name} attempt {attempt}/{self.max_attempts} failed "
                        f"({e.message}), retrying in {delay:.2f}s"
                    )
                    await self._sleep(delay)

        logger.warning(f"Backend {backend.name} still failing after {self.max_attempts} attempts")
        raise last_error

    async def embed(self, image: bytes) -> np.ndarray:
        """
        Embed raw image bytes with the first backend that succeeds.

        Args:
            image: Encoded image payload.

        Returns:
            1-D float32 vector.

        Raises:
            EmbeddingUnavailable: If every backend failed.
        """
        last_error: Optional[Exception] = None

        for backend in self.backends:
            try:
                vector = await self._try_backend(backend, image)
                logger.debug(f"Embedded with {backend.name} (dim={vector.shape[0]})")
                return vector
            except (TransientBackendError, BackendRequestError) as e:
                last_error = e
                logger.warning(f"Backend {backend.name} unavailable: {e}")

        raise EmbeddingUnavailable(last_error=last_error)

    async def embed_url(self, url: str, memoize: Optional[bool] = None) -> np.ndarray:
        """
        Fetch an image by URL and embed it, using the memo when enabled.

        Args:
            url: Source image URL.
            memoize: Override the provider default for this call. Bulk
                callers pass False so vectors are not retained.

        Returns:
            1-D float32 vector (read-only when memoized).

        Raises:
            EmbeddingUnavailable: If the image cannot be fetched or embedded.
        """
        use_memo = self.memoize if memoize is None else memoize
        if use_memo and url in self._memo:
            return self._memo[url]

        if self.fetcher is None:
            raise EmbeddingUnavailable("No image fetcher configured", context={"url": url})

        try:
            image = await self.fetcher.fetch(url)
        except ImageFetchError as e:
            raise EmbeddingUnavailable(
                f"Could not fetch image: {e.message}", last_error=e, context={"url": url}
            ) from e

        vector = await self.embed(image)

        if use_memo:
            vector.setflags(write=False)
            self._memo[url] = vector
        return vector


def build_backends(config: EmbeddingConfig, session: aiohttp.ClientSession) -> list[EmbeddingBackend]:
    """
    Instantiate the configured backends in preference order.

    Args:
        config: Embedding configuration.
        session: Shared aiohttp session for hosted backends.

    Returns:
        Backend instances.
    """
    backends: list[EmbeddingBackend] = []
    for name in config.backends:
        if name in HF_ROUTES:
            backends.append(
                HuggingFaceInferenceBackend(
                    route=name,
                    model=config.model,
                    session=session,
                    api_token=config.api_token,
                    api_base=config.api_base,
                    timeout=config.timeout,
                    wait_for_model=config.wait_for_model,
                )
            )
        elif name == "local":
            backends.append(LocalCLIPBackend(model=config.model))
    logger.info(f"Embedding backends: {[b.name for b in backends]} (model={config.model})")
    return backends


def create_provider(config: EmbeddingConfig, session: aiohttp.ClientSession) -> EmbeddingProvider:
    """Build a provider with configured backends and an image fetcher."""
    return EmbeddingProvider(
        backends=build_backends(config, session),
        fetcher=ImageFetcher(session, width=config.image_width, timeout=config.timeout),
        max_attempts=config.max_attempts,
        backoff_seconds=config.backoff_seconds,
        memoize=config.memoize,
    )

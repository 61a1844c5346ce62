"""Hugging Face hosted inference backend.

Posts raw image bytes to a feature-extraction endpoint and shapes the
response into one vector. The same model is reachable through two API
routes, each exposed as its own backend so the provider can fall back
from one to the other.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Optional

import aiohttp
import numpy as np

from castmatch.domain.interfaces import EmbeddingBackend
from castmatch.utils.exceptions import BackendRequestError, TransientBackendError
from castmatch.utils.logger import get_logger

logger = get_logger(__name__)

# Backend name -> URL path template
HF_ROUTES = {
    "hf_pipeline": "/pipeline/feature-extraction/{model}",
    "hf_models": "/models/{model}",
}


def to_vector(payload: Any, backend: str = "unknown") -> np.ndarray:
    """Shape a backend response into one fixed-length vector.

    A flat list is returned as-is. A token-by-token matrix is averaged
    across tokens. A leading batch dimension of size one is dropped
    first.

    Args:
        payload: Decoded JSON response
        backend: Backend name for error context

    Returns:
        1-D float32 array

    Raises:
        BackendRequestError: If the payload is not a non-empty numeric vector or matrix
    """
    try:
        arr = np.asarray(payload, dtype=np.float32)
    except (TypeError, ValueError) as e:
        raise BackendRequestError("malformed embedding response", backend=backend) from e

    while arr.ndim > 2 and arr.shape[0] == 1:
        arr = arr[0]

    if arr.ndim == 2:
        if arr.shape[0] == 0:
            raise BackendRequestError("empty embedding matrix", backend=backend)
        arr = arr.mean(axis=0)

    if arr.ndim != 1 or arr.size == 0:
        raise BackendRequestError(
            f"unexpected embedding shape {arr.shape}",
            backend=backend,
        )
    if not np.all(np.isfinite(arr)):
        raise BackendRequestError("non-finite values in embedding", backend=backend)

    return arr.astype(np.float32)


class HuggingFaceInferenceBackend(EmbeddingBackend):
    """Feature extraction through the hosted inference API."""

    def __init__(
        self,
        route: str,
        model: str,
        session: aiohttp.ClientSession,
        api_token: Optional[str] = None,
        api_base: str = "https://api-inference.huggingface.co",
        timeout: int = 60,
        wait_for_model: bool = True,
    ):
        """Initialize the backend.

        Args:
            route: One of HF_ROUTES
            model: Model identifier, e.g. "openai/clip-vit-base-patch32"
            session: Shared aiohttp session
            api_token: Bearer token
            api_base: API base URL
            timeout: Request timeout in seconds
            wait_for_model: Send the header asking the API to wait for a cold model

        Raises:
            ValueError: If route is unknown
        """
        if route not in HF_ROUTES:
            raise ValueError(f"Unknown route {route!r}. Choose from: {list(HF_ROUTES)}")

        self.route = route
        self.model = model
        self.session = session
        self.api_token = api_token
        self.url = api_base.rstrip("/") + HF_ROUTES[route].format(model=model)
        self.timeout = timeout
        self.wait_for_model = wait_for_model

    @property
    def name(self) -> str:
        return self.route

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/octet-stream"}
        if self.api_token:
            headers["Authorization"] = f"Bearer {self.api_token}"
        if self.wait_for_model:
            headers["x-wait-for-model"] = "true"
        return headers

    async def embed(self, image: bytes) -> np.ndarray:
        """Post image bytes and return the pooled embedding.

        Raises:
            TransientBackendError: On 5xx, timeout or connection failure
            BackendRequestError: On any other non-200 status or a malformed body
        """
        try:
            async with self.session.post(
                self.url,
                data=image,
                headers=self._headers(),
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as response:
                status = response.status
                raw = await response.read()
        except asyncio.TimeoutError as e:
            raise TransientBackendError("backend timeout", backend=self.name) from e
        except aiohttp.ClientError as e:
            raise TransientBackendError(f"backend connection error: {e}", backend=self.name) from e

        body = raw.decode("utf-8", errors="replace")
        if status >= 500:
            raise TransientBackendError(
                f"HTTP {status}", status=status, backend=self.name,
                context={"body": body[:200]},
            )
        if status != 200:
            raise BackendRequestError(
                f"HTTP {status}", status=status, backend=self.name,
                context={"body": body[:200]},
            )

        try:
            payload = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise BackendRequestError("response is not JSON", backend=self.name) from e

        return to_vector(payload, backend=self.name)

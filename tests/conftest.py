"""Pytest fixtures and configuration for CastMatch tests."""

import io
import json
from typing import Any, Callable, Optional

import numpy as np
import pytest
from PIL import Image

from castmatch.core import EmbeddingProvider
from castmatch.domain.entities import GenderTag, ReferenceGroup
from castmatch.domain.interfaces import EmbeddingBackend, ReferenceStorage
from castmatch.utils.config import (
    AppConfig,
    AuthConfig,
    EmbeddingConfig,
    ReferenceConfig,
    StorageConfig,
)
from castmatch.utils.exceptions import BackendRequestError, ImageFetchError, StorageError


# ============================================
# Fakes
# ============================================


class FakeBackend(EmbeddingBackend):
    """Embedding backend answering from a script or a bytes -> vector table."""

    def __init__(
        self,
        name: str = "fake",
        vectors: Optional[dict[bytes, Any]] = None,
        script: Optional[list[Any]] = None,
    ):
        self._name = name
        self.vectors = vectors or {}
        self.script = list(script) if script is not None else None
        self.calls: list[bytes] = []

    @property
    def name(self) -> str:
        return self._name

    async def embed(self, image: bytes) -> np.ndarray:
        self.calls.append(image)
        if self.script is not None:
            outcome = self.script.pop(0)
        elif image in self.vectors:
            outcome = self.vectors[image]
        else:
            outcome = BackendRequestError("no vector for image", backend=self._name)
        if isinstance(outcome, BaseException):
            raise outcome
        return np.asarray(outcome, dtype=np.float32)


class FakeFetcher:
    """Image fetcher returning the URL's bytes; listed URLs fail."""

    def __init__(self, failing: tuple[str, ...] = ()):
        self.failing = set(failing)
        self.calls: list[str] = []

    async def fetch(self, url: str) -> bytes:
        self.calls.append(url)
        if url in self.failing:
            raise ImageFetchError("image_fetch_failed:404", url=url, status=404)
        return url.encode("utf-8")


class FakeStorage(ReferenceStorage):
    """In-memory folder listing."""

    def __init__(self, folders: dict[str, Any], root_error: Optional[Exception] = None):
        self.folders = folders
        self.root_error = root_error
        self.listed: list[str] = []

    async def list_groups(self) -> list[str]:
        if self.root_error is not None:
            raise self.root_error
        return list(self.folders)

    async def list_group_images(self, group: str) -> list[str]:
        self.listed.append(group)
        urls = self.folders.get(group)
        if isinstance(urls, BaseException):
            raise urls
        if urls is None:
            raise StorageError("cloudinary_search_failed:404", status=404)
        return list(urls)


class FakeResponse:
    """Stand-in for an aiohttp response used as an async context manager."""

    def __init__(self, status: int = 200, body: bytes = b"", json_data: Any = None, text: Optional[str] = None):
        self.status = status
        self._body = body
        self._json = json_data
        self._text = text

    async def read(self) -> bytes:
        if self._body or (self._text is None and self._json is None):
            return self._body
        return (await self.text()).encode("utf-8")

    async def text(self) -> str:
        if self._text is not None:
            return self._text
        if self._json is not None:
            return json.dumps(self._json)
        return self._body.decode("utf-8", errors="replace")

    async def json(self) -> Any:
        if self._json is None and (self._body or self._text is not None):
            return json.loads(await self.read())
        return self._json

    async def __aenter__(self) -> "FakeResponse":
        return self

    async def __aexit__(self, *exc_info) -> bool:
        return False


class FakeSession:
    """Stand-in for aiohttp.ClientSession replaying queued responses."""

    def __init__(self, responses: Optional[list[Any]] = None):
        self.responses = list(responses or [])
        self.calls: list[tuple[str, str, dict[str, Any]]] = []

    def _next(self, method: str, url: str, kwargs: dict[str, Any]) -> FakeResponse:
        self.calls.append((method, url, kwargs))
        outcome = self.responses.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    def get(self, url: str, **kwargs) -> FakeResponse:
        return self._next("GET", url, kwargs)

    def post(self, url: str, **kwargs) -> FakeResponse:
        return self._next("POST", url, kwargs)


async def no_sleep(delay: float) -> None:
    return None


# ============================================
# Fixtures
# ============================================


@pytest.fixture
def test_config() -> AppConfig:
    """Provide test-specific configuration with no startup build."""
    return AppConfig(
        auth=AuthConfig(evaluator_api_key="test-key", admin_token="admin-secret"),
        storage=StorageConfig(cloud_name="demo", api_key="key", api_secret="secret"),
        embedding=EmbeddingConfig(model="openai/clip-vit-base-patch32", backoff_seconds=0.0),
        references=ReferenceConfig(concurrency=2, load_on_startup=False),
        log_level="DEBUG",
    )


@pytest.fixture
def fake_backend_cls() -> type:
    return FakeBackend


@pytest.fixture
def fake_storage_cls() -> type:
    return FakeStorage


@pytest.fixture
def fake_response_cls() -> type:
    return FakeResponse


@pytest.fixture
def fake_session_cls() -> type:
    return FakeSession


@pytest.fixture
def fake_fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def make_provider() -> Callable[..., EmbeddingProvider]:
    """Factory for providers over fake backends and a fake fetcher."""

    def _make(backends, failing_urls: tuple[str, ...] = (), **kwargs) -> EmbeddingProvider:
        kwargs.setdefault("sleep", no_sleep)
        return EmbeddingProvider(backends, fetcher=FakeFetcher(failing_urls), **kwargs)

    return _make


@pytest.fixture
def sample_vectors() -> dict[str, np.ndarray]:
    """Three orthogonal unit vectors."""
    return {
        "x": np.array([1.0, 0.0, 0.0], dtype=np.float32),
        "y": np.array([0.0, 1.0, 0.0], dtype=np.float32),
        "z": np.array([0.0, 0.0, 1.0], dtype=np.float32),
    }


@pytest.fixture
def reference_groups(sample_vectors) -> list[ReferenceGroup]:
    """Two reference groups along the x and y axes."""
    return [
        ReferenceGroup("Reference Female A", GenderTag.FEMALE, 3, sample_vectors["x"].copy()),
        ReferenceGroup("Reference Male B", GenderTag.MALE, 2, sample_vectors["y"].copy()),
    ]


@pytest.fixture
def sample_image_bytes() -> bytes:
    """A small encoded JPEG."""
    buffer = io.BytesIO()
    Image.new("RGB", (64, 64), color=(255, 0, 0)).save(buffer, format="JPEG")
    return buffer.getvalue()

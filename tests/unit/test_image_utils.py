"""Unit tests for image helpers and the image fetcher."""

import asyncio

import aiohttp
import pytest
from PIL import Image

from castmatch.infrastructure.http import ImageFetcher
from castmatch.utils.exceptions import ImageFetchError
from castmatch.utils.image_utils import load_image_bytes, shrink_url

CLOUDINARY_URL = "https://res.cloudinary.com/demo/image/upload/v1712/ref/a.jpg"


class TestShrinkUrl:
    """Test the delivery URL transform."""

    def test_inserts_transform(self):
        assert shrink_url(CLOUDINARY_URL) == (
            "https://res.cloudinary.com/demo/image/upload/f_jpg,q_auto,w_512,c_limit/v1712/ref/a.jpg"
        )

    def test_custom_width(self):
        assert "w_256" in shrink_url(CLOUDINARY_URL, width=256)

    def test_already_transformed(self):
        """Test a transformed URL is left alone."""
        url = shrink_url(CLOUDINARY_URL)
        assert shrink_url(url) == url

    def test_other_hosts_unchanged(self):
        url = "https://example.com/photos/a.jpg"
        assert shrink_url(url) == url


class TestLoadImageBytes:
    """Test image decoding."""

    def test_decodes_jpeg(self, sample_image_bytes):
        image = load_image_bytes(sample_image_bytes)
        assert isinstance(image, Image.Image)
        assert image.mode == "RGB"
        assert image.size == (64, 64)

    def test_empty(self):
        with pytest.raises(ValueError):
            load_image_bytes(b"")

    def test_corrupted(self):
        with pytest.raises(OSError):
            load_image_bytes(b"definitely not an image")


class TestImageFetcher:
    """Test image downloads."""

    def test_fetches_transformed_url(self, fake_session_cls, fake_response_cls):
        session = fake_session_cls([fake_response_cls(200, body=b"jpeg")])
        fetcher = ImageFetcher(session, width=512)

        data = asyncio.run(fetcher.fetch(CLOUDINARY_URL))

        assert data == b"jpeg"
        method, url, _ = session.calls[0]
        assert method == "GET"
        assert "/image/upload/f_jpg,q_auto,w_512,c_limit/" in url

    def test_non_200(self, fake_session_cls, fake_response_cls):
        session = fake_session_cls([fake_response_cls(404)])
        with pytest.raises(ImageFetchError) as exc_info:
            asyncio.run(ImageFetcher(session).fetch(CLOUDINARY_URL))
        assert exc_info.value.message == "image_fetch_failed:404"

    def test_timeout(self, fake_session_cls):
        session = fake_session_cls([asyncio.TimeoutError()])
        with pytest.raises(ImageFetchError):
            asyncio.run(ImageFetcher(session).fetch(CLOUDINARY_URL))

    def test_connection_error(self, fake_session_cls):
        session = fake_session_cls([aiohttp.ClientConnectionError("refused")])
        with pytest.raises(ImageFetchError):
            asyncio.run(ImageFetcher(session).fetch(CLOUDINARY_URL))

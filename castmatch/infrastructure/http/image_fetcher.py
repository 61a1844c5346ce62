"""Asynchronous image download for embedding.

Photos are fetched over HTTP with aiohttp. Cloudinary delivery URLs are
rewritten to request a downscaled JPEG first, which bounds payload size
and embedding cost; other URLs are fetched unchanged.
"""

import asyncio

import aiohttp

from castmatch.utils.exceptions import ImageFetchError
from castmatch.utils.image_utils import shrink_url
from castmatch.utils.logger import get_logger

logger = get_logger(__name__)


class ImageFetcher:
    """Download image bytes through a shared aiohttp session."""

    def __init__(self, session: aiohttp.ClientSession, width: int = 512, timeout: int = 30):
        """Initialize the fetcher.

        Args:
            session: Shared client session (owned by the caller)
            width: Width requested from on-the-fly transforms
            timeout: Total request timeout in seconds
        """
        self.session = session
        self.width = width
        self.timeout = timeout

    async def fetch(self, url: str) -> bytes:
        """Download one image.

        Args:
            url: Source image URL

        Returns:
            Raw image bytes

        Raises:
            ImageFetchError: On non-200 status, timeout or connection failure
        """
        target = shrink_url(url, self.width)
        if target != url:
            logger.debug(f"Fetching transformed image: {target[:100]}")

        try:
            async with self.session.get(
                target,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as response:
                if response.status != 200:
                    raise ImageFetchError(
                        f"image_fetch_failed:{response.status}",
                        url=url,
                        status=response.status,
                    )
                return await response.read()

        except asyncio.TimeoutError as e:
            raise ImageFetchError("image_fetch_timeout", url=url) from e
        except aiohttp.ClientError as e:
            raise ImageFetchError(f"image_fetch_error: {e}", url=url) from e

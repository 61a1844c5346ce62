"""
Cloudinary Admin API client for reference image folders.

Lists top-level folders and searches the image assets inside one
folder. Every call authenticates with HTTP basic auth built from the
API key and secret.

Example:
    >>> storage = CloudinaryStorage(config.storage, session)
    >>> folders = await storage.list_groups()
    >>> urls = await storage.list_group_images("Reference Female A")
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional

import aiohttp

from castmatch.domain.interfaces import ReferenceStorage
from castmatch.utils.config import StorageConfig
from castmatch.utils.exceptions import ConfigurationError, StorageError
from castmatch.utils.logger import get_logger

logger = get_logger(__name__)

API_BASE = "https://api.cloudinary.com/v1_1"


def pluck(payload: Any, key: str, field: str) -> Optional[list[str]]:
    """Collect non-empty string `field` values from the objects listed under `key`.

    Returns None when the payload does not have the expected shape.
    """
    if not isinstance(payload, dict):
        return None
    items = payload.get(key) or []
    if not isinstance(items, list):
        return None
    return [
        item[field] for item in items
        if isinstance(item, dict) and isinstance(item.get(field), str) and item[field]
    ]


class CloudinaryStorage(ReferenceStorage):
    """
    Reference storage backed by the Cloudinary Admin API.

    Attributes:
        config: Storage configuration (credentials, limits).
    """

    def __init__(self, config: StorageConfig, session: aiohttp.ClientSession):
        """
        Initialize the client.

        Args:
            config: Storage configuration.
            session: Shared aiohttp session (owned by the caller).
        """
        self.config = config
        self.session = session

    @property
    def base_url(self) -> str:
        return f"{API_BASE}/{self.config.cloud_name}"

    def _auth(self) -> aiohttp.BasicAuth:
        """Build basic auth, failing fast when credentials are missing."""
        if not self.config.has_credentials:
            raise ConfigurationError(
                "Cloudinary credentials missing",
                context={"cloud_name": self.config.cloud_name or None},
            )
        return aiohttp.BasicAuth(self.config.api_key, self.config.api_secret)

    def _timeout(self) -> aiohttp.ClientTimeout:
        return aiohttp.ClientTimeout(total=self.config.timeout)

    async def list_groups(self) -> list[str]:
        """
        List top-level folder names.

        Raises:
            ConfigurationError: If credentials are missing.
            StorageError: On a non-200 response or connection failure.
        """
        auth = self._auth()
        url = f"{self.base_url}/folders"

        try:
            async with self.session.get(url, auth=auth, timeout=self._timeout()) as response:
                if response.status != 200:
                    raise StorageError(
                        f"cloudinary_list_folders_failed:{response.status}",
                        status=response.status,
                    )
                payload = await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise StorageError(f"cloudinary_list_folders_failed: {e}") from e

        names = pluck(payload, "folders", "name")
        if names is None:
            raise StorageError("cloudinary_list_folders_failed: unexpected response body")
        logger.debug(f"Listed {len(names)} root folders")
        return names

    async def list_group_images(self, group: str) -> list[str]:
        """
        List secure URLs of the image assets in one folder.

        Args:
            group: Folder name.

        Returns:
            Up to `max_results` URLs in search order.

        Raises:
            ConfigurationError: If credentials are missing.
            StorageError: On a non-200 response or connection failure.
        """
        auth = self._auth()
        url = f"{self.base_url}/resources/search"
        body = {
            "expression": f'resource_type:image AND folder="{group}"',
            "max_results": self.config.max_results,
        }

        try:
            async with self.session.post(url, json=body, auth=auth, timeout=self._timeout()) as response:
                if response.status != 200:
                    detail = await response.text()
                    raise StorageError(
                        f"cloudinary_search_failed:{response.status}",
                        status=response.status,
                        context={"folder": group, "detail": detail[:200]},
                    )
                payload = await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise StorageError(f"cloudinary_search_failed: {e}", context={"folder": group}) from e

        urls = pluck(payload, "resources", "secure_url")
        if urls is None:
            raise StorageError(
                "cloudinary_search_failed: unexpected response body", context={"folder": group},
            )
        logger.debug(f"Folder {group!r}: {len(urls)} assets")
        return urls

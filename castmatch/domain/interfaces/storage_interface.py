"""
Abstract interface for reference image storage.
"""

from abc import ABC, abstractmethod


class ReferenceStorage(ABC):
    """
    Abstract base class for the storage holding reference image folders.
    """

    @abstractmethod
    async def list_groups(self) -> list[str]:
        """
        List top-level folder names.

        Returns:
            Folder names in listing order.
        """
        pass

    @abstractmethod
    async def list_group_images(self, group: str) -> list[str]:
        """
        List image URLs inside one folder.

        Args:
            group: Folder name.

        Returns:
            Image URLs in listing order, bounded by the storage's max result count.
        """
        pass

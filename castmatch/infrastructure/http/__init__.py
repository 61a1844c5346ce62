"""HTTP helpers."""

from .image_fetcher import ImageFetcher

__all__ = ["ImageFetcher"]

"""Reference storage clients."""

from .cloudinary_client import CloudinaryStorage

__all__ = ["CloudinaryStorage"]

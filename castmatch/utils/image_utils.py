"""Image helpers for fetched photo bytes.

This module decodes downloaded image payloads into PIL images and
rewrites delivery URLs that support on-the-fly transforms.
"""

import io

from PIL import Image


# Marker present in Cloudinary delivery URLs
UPLOAD_MARKER = "/image/upload/"


def load_image_bytes(data: bytes) -> Image.Image:
    """Decode raw image bytes into an RGB PIL image.

    Args:
        data: Encoded image payload (JPEG, PNG, WebP, ...)

    Returns:
        PIL Image in RGB mode

    Raises:
        ValueError: If the payload is empty
        OSError: If the payload is corrupted or the format is unsupported
    """
    if not data:
        raise ValueError("Cannot decode empty image payload")

    try:
        image = Image.open(io.BytesIO(data))
        # Verify image can be loaded
        image.verify()
        # Reopen after verify (verify invalidates the image)
        image = Image.open(io.BytesIO(data))
    except Exception as e:
        raise OSError(f"Failed to decode image payload: {str(e)}")

    # Convert to RGB if needed (handles RGBA, grayscale, palette)
    if image.mode != 'RGB':
        image = image.convert('RGB')
    return image


def shrink_url(url: str, width: int = 512) -> str:
    """Insert a downscale/recompress transform into a Cloudinary delivery URL.

    URLs that are not Cloudinary uploads, or that already carry the
    transform, are returned unchanged.

    Args:
        url: Source image URL
        width: Maximum width to request

    Returns:
        URL to fetch
    """
    idx = url.find(UPLOAD_MARKER)
    if idx == -1 or f"{UPLOAD_MARKER}f_jpg" in url:
        return url

    split = idx + len(UPLOAD_MARKER)
    return f"{url[:split]}f_jpg,q_auto,w_{width},c_limit/{url[split:]}"

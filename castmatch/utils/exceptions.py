"""
Custom exception hierarchy for CastMatch.

Provides a structured exception hierarchy for different error scenarios:
- AppException: Base for all application errors
- ConfigurationError: Missing or invalid configuration
- AuthError / ValidationError: Request-level rejections
- EmbeddingError: Embedding backend and image fetch errors
- StorageError: Reference storage listing errors
- CacheBuildInProgress: A reference cache build is already running

Each exception includes:
- Descriptive message
- Optional error code for programmatic handling
- Optional context dictionary for debugging

Example:
    >>> from castmatch.utils.exceptions import EmbeddingUnavailable
    >>> raise EmbeddingUnavailable("No backend produced a vector", context={"url": url})
"""

from __future__ import annotations

from typing import Any, Dict, Optional


# ============================================
# Base Exception
# ============================================


class AppException(Exception):
    """
    Base exception for all CastMatch application errors.

    Attributes:
        message: Human-readable error description.
        code: Optional error code for programmatic handling.
        context: Optional dictionary with debugging context.

    Example:
        >>> try:
        ...     raise AppException("Something went wrong", code="APP_001")
        ... except AppException as e:
        ...     print(f"Error {e.code}: {e.message}")
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Initialize the exception.

        Args:
            message: Human-readable error description.
            code: Optional error code (e.g., "EMBEDDING_UNAVAILABLE").
            context: Optional dict with additional debugging info.
        """
        self.message = message
        self.code = code or self._default_code()
        self.context = context or {}
        super().__init__(self.message)

    def _default_code(self) -> str:
        """Generate default error code from class name."""
        # Convert CamelCase to UPPER_SNAKE_CASE
        name = self.__class__.__name__
        code = ""
        for i, char in enumerate(name):
            if char.isupper() and i > 0:
                code += "_"
            code += char.upper()
        return code

    def __str__(self) -> str:
        """String representation with code if available."""
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message

    def __repr__(self) -> str:
        """Detailed representation for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code!r}, "
            f"context={self.context!r})"
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "context": self.context,
        }


# ============================================
# Configuration Errors
# ============================================


class ConfigurationError(AppException):
    """
    Raised when configuration is missing or cannot be parsed.

    A cache build that hits this error aborts; the previous snapshot
    stays authoritative.

    Example:
        >>> raise ConfigurationError(
        ...     "Cloudinary credentials missing",
        ...     context={"cloud_name": ""}
        ... )
    """

    def __init__(self, message: str = "Invalid configuration", **kwargs) -> None:
        super().__init__(message, code="CONFIG_INVALID", **kwargs)


# ============================================
# Request Errors
# ============================================


class AuthError(AppException):
    """Raised when a credential is missing or does not match."""

    def __init__(self, message: str = "Unauthorized", **kwargs) -> None:
        super().__init__(message, code="AUTH_FAILED", **kwargs)


class ValidationError(AppException):
    """
    Raised when an inbound request is malformed.

    Example:
        >>> raise ValidationError(
        ...     "`photos` must be a non-empty array of URLs",
        ...     field="photos",
        ... )
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        **kwargs,
    ) -> None:
        context = kwargs.pop("context", {})
        if field:
            context["field"] = field
        super().__init__(message, code="VALIDATION_FAILED", context=context, **kwargs)


# ============================================
# Embedding Errors
# ============================================


class EmbeddingError(AppException):
    """Base exception for embedding-related errors."""

    pass


class EmbeddingUnavailable(EmbeddingError):
    """
    Raised when no backend could produce a vector for one image.

    Callers degrade on this error (drop the image, or fall back to a
    neutral similarity) instead of failing the whole evaluation.
    """

    def __init__(
        self,
        message: str = "No embedding backend produced a vector",
        last_error: Optional[BaseException] = None,
        **kwargs,
    ) -> None:
        context = kwargs.pop("context", {})
        if last_error is not None:
            context["last_error"] = str(last_error)
        self.last_error = last_error
        super().__init__(message, code="EMBEDDING_UNAVAILABLE", context=context, **kwargs)


class TransientBackendError(EmbeddingError):
    """
    Raised for server-side (5xx) backend failures that are worth retrying.

    Example:
        >>> raise TransientBackendError("HTTP 503", status=503, backend="hf_models")
    """

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        backend: Optional[str] = None,
        **kwargs,
    ) -> None:
        context = kwargs.pop("context", {})
        if status is not None:
            context["status"] = status
        if backend:
            context["backend"] = backend
        self.status = status
        super().__init__(message, code="BACKEND_TRANSIENT", context=context, **kwargs)


class BackendRequestError(EmbeddingError):
    """Raised for non-retryable backend failures (auth, bad request, bad payload)."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        backend: Optional[str] = None,
        **kwargs,
    ) -> None:
        context = kwargs.pop("context", {})
        if status is not None:
            context["status"] = status
        if backend:
            context["backend"] = backend
        self.status = status
        super().__init__(message, code="BACKEND_REQUEST", context=context, **kwargs)


class ImageFetchError(EmbeddingError):
    """Raised when a source image cannot be downloaded."""

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        status: Optional[int] = None,
        **kwargs,
    ) -> None:
        context = kwargs.pop("context", {})
        if url:
            context["url"] = url
        if status is not None:
            context["status"] = status
        super().__init__(message, code="IMAGE_FETCH", context=context, **kwargs)


# ============================================
# Storage / Cache Errors
# ============================================


class StorageError(AppException):
    """Raised when the reference storage service rejects a listing call."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        **kwargs,
    ) -> None:
        context = kwargs.pop("context", {})
        if status is not None:
            context["status"] = status
        super().__init__(message, code="STORAGE_FAILED", context=context, **kwargs)


class CacheBuildInProgress(AppException):
    """Raised when a reference cache build is requested while one is running."""

    def __init__(self, message: str = "Reference cache build already in progress", **kwargs) -> None:
        super().__init__(message, code="CACHE_BUSY", **kwargs)


class InternalError(AppException):
    """Generic failure surfaced to callers; details stay in the server log."""

    def __init__(self, message: str = "server_error", **kwargs) -> None:
        super().__init__(message, code="INTERNAL", **kwargs)

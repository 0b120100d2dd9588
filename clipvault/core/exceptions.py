"""Custom exceptions for the ClipVault upload client.

This module defines all custom exceptions used throughout the application.
All exceptions inherit from ClipVaultError for easy catching.

Exception classes include context dictionaries for structured logging
and debugging. Use the `context` property to access additional details.

Severity inside an upload batch:
- ThumbnailError / CompressionError: non-fatal, the job degrades gracefully
- AuthorizationError / TransportError / FinalizationError: fatal to one job
- BatchInputError: fatal to the whole submission
"""

import enum
from typing import Any


class ClipVaultError(Exception):
    """Base exception for all ClipVault errors.

    All custom exceptions in the application should inherit from this class.
    Provides a context dictionary for structured error information.

    Attributes:
        context: Dictionary with additional error context

    Example:
        >>> try:
        ...     raise ClipVaultError("Something went wrong", context={"job_id": "temp-1"})
        ... except ClipVaultError as e:
        ...     print(f"Error: {e}, Context: {e.context}")
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        """Initialize ClipVaultError.

        Args:
            message: Error message
            context: Optional dictionary with additional context
        """
        self.context = context or {}
        super().__init__(message)

    def with_context(self, **kwargs: Any) -> "ClipVaultError":
        """Add additional context to the exception.

        Args:
            **kwargs: Key-value pairs to add to context

        Returns:
            Self for method chaining
        """
        self.context.update(kwargs)
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/serialization.

        Returns:
            Dictionary with error type, message, and context
        """
        return {
            "error_type": self.__class__.__name__,
            "message": str(self),
            "context": self.context,
        }


# ============================================
# Configuration Errors
# ============================================


class ConfigError(ClipVaultError):
    """Raised when configuration is missing or invalid."""

    def __init__(
        self,
        message: str,
        config_key: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize ConfigError.

        Args:
            message: Error message
            config_key: Configuration key involved
            context: Additional context
        """
        ctx = context or {}
        if config_key:
            ctx["config_key"] = config_key
        super().__init__(message, context=ctx)


# ============================================
# Media Processing Errors
# ============================================


class MediaError(ClipVaultError):
    """Base exception for local media processing errors."""

    def __init__(
        self,
        message: str,
        file_name: str | None = None,
        stderr: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize MediaError.

        Args:
            message: Error message
            file_name: Name of the source file
            stderr: ffmpeg stderr output, if any
            context: Additional context
        """
        ctx = context or {}
        if file_name:
            ctx["file_name"] = file_name
        if stderr:
            ctx["stderr"] = stderr[-500:]  # Tail holds the actual error

        self.file_name = file_name
        self.stderr = stderr

        super().__init__(message, context=ctx)


class ThumbnailError(MediaError):
    """Raised when a preview thumbnail cannot be produced."""


class ExtractionError(ThumbnailError):
    """Raised when the source cannot be decoded or no frame arrives in time."""


class CompressionError(MediaError):
    """Raised when a re-encode cannot start or produces no output.

    Attributes:
        quality: Requested quality
    """

    def __init__(
        self,
        message: str,
        file_name: str | None = None,
        quality: float | None = None,
        stderr: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize CompressionError.

        Args:
            message: Error message
            file_name: Name of the source file
            quality: Requested quality
            stderr: ffmpeg stderr output
            context: Additional context
        """
        ctx = context or {}
        if quality is not None:
            ctx["quality"] = quality

        self.quality = quality

        super().__init__(message, file_name=file_name, stderr=stderr, context=ctx)


# ============================================
# Upload Errors
# ============================================


class UploadError(ClipVaultError):
    """Base exception for upload-related errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        endpoint: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize UploadError.

        Args:
            message: Error message
            status_code: HTTP status code (if applicable)
            endpoint: Endpoint that was called
            context: Additional context
        """
        ctx = context or {}
        if status_code is not None:
            ctx["status_code"] = status_code
        if endpoint:
            ctx["endpoint"] = endpoint

        self.status_code = status_code
        self.endpoint = endpoint

        super().__init__(message, context=ctx)


class AuthorizationError(UploadError):
    """Raised when the authorization service refuses to issue a destination."""


class FinalizationError(UploadError):
    """Raised when the record service refuses to finalize an uploaded object."""


class TransportErrorKind(str, enum.Enum):
    """Classification of a failed object transfer."""

    NETWORK = "network"  # Connection-level failure
    TIMEOUT = "timeout"  # Deadline exceeded
    CORS_BLOCKED = "cors_blocked"  # Peer dropped the request without a status
    SERVER_REJECTED = "server_rejected"  # Non-2xx response
    CANCELLED = "cancelled"  # Caller cancelled the send


CORS_REMEDIATION_HINT = (
    "The storage endpoint closed the request without an HTTP status. "
    "Check the bucket's CORS and access policy for PUT from this origin."
)


class TransportError(UploadError):
    """Raised when a blob could not be transferred to its destination.

    Attributes:
        kind: Failure classification
        detail: Diagnostic detail (response body, merged attempt messages)
        hint: Remediation hint for the user, if any
    """

    def __init__(
        self,
        kind: TransportErrorKind,
        detail: str,
        status_code: int | None = None,
        endpoint: str | None = None,
        hint: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize TransportError.

        Args:
            kind: Failure classification
            detail: Diagnostic detail
            status_code: HTTP status code for server rejections
            endpoint: Destination URL
            hint: Remediation hint
            context: Additional context
        """
        ctx = context or {}
        ctx["kind"] = kind.value
        if hint:
            ctx["hint"] = hint

        self.kind = kind
        self.detail = detail
        self.hint = hint

        message = f"Transfer failed ({kind.value}): {detail}"
        if hint:
            message += f" - {hint}"

        super().__init__(message, status_code=status_code, endpoint=endpoint, context=ctx)


# ============================================
# Batch Errors
# ============================================


class BatchInputError(ClipVaultError):
    """Raised synchronously when a submitted batch is invalid."""


__all__ = [
    "ClipVaultError",
    "ConfigError",
    "MediaError",
    "ThumbnailError",
    "ExtractionError",
    "CompressionError",
    "UploadError",
    "AuthorizationError",
    "FinalizationError",
    "TransportErrorKind",
    "TransportError",
    "CORS_REMEDIATION_HINT",
    "BatchInputError",
]

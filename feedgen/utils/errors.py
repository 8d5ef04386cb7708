"""
Error hierarchy and centralized error categorization.

Every failure the generator raises derives from FeedError and carries an
ErrorType kind, so caller layers can map it to a response without string
matching. Nothing in this package retries; callers own retry policy.
"""

import asyncio
from typing import Any, Optional

from feedgen.models.schemas import ErrorType


# =============================================================================
# Custom Exceptions
# =============================================================================

class FeedError(Exception):
    """Base application exception."""

    error_type: ErrorType = ErrorType.INTERNAL_ERROR

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(FeedError):
    """Malformed caller input."""
    error_type = ErrorType.VALIDATION_ERROR

    def __init__(
        self,
        message: str,
        code: str = "INVALID_INPUT_FORMAT",
        errors: Optional[list[dict[str, str]]] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.code = code
        self.errors = errors or []


class RecordNotFoundError(FeedError):
    error_type = ErrorType.NOT_FOUND_ERROR

    def __init__(self, business_id: str, file_key: str):
        super().__init__(
            f"Feed not found with file key '{file_key}' for business '{business_id}'",
            details={"business_id": business_id, "file_key": file_key},
        )


class RecordExistsError(FeedError):
    error_type = ErrorType.CONFLICT_ERROR

    def __init__(self, file_key: str):
        super().__init__(
            f"A feed record already exists for file key '{file_key}'",
            details={"file_key": file_key},
        )


class UnsupportedPlatformError(FeedError):
    error_type = ErrorType.UNSUPPORTED_PLATFORM

    def __init__(self, platform: str):
        super().__init__(f"Unsupported platform: {platform}", details={"platform": platform})


class CatalogReadError(FeedError):
    error_type = ErrorType.CATALOG_ERROR


class ArtifactWriteError(FeedError):
    error_type = ErrorType.STORAGE_ERROR


class ArtifactDeleteError(FeedError):
    """Blob deletion failed for a reason other than the object being absent."""
    error_type = ErrorType.STORAGE_ERROR


class InvalidTransitionError(FeedError):
    error_type = ErrorType.CONFLICT_ERROR

    def __init__(self, current: str, target: str):
        super().__init__(
            f"Cannot move feed run from '{current}' to '{target}'",
            details={"current": current, "target": target},
        )


class RunInProgressError(FeedError):
    """Another run already holds the claim on this file key."""
    error_type = ErrorType.CONFLICT_ERROR

    def __init__(self, file_key: str):
        super().__init__(
            f"A generation run is already in progress for '{file_key}'",
            details={"file_key": file_key},
        )


class ConcurrentUpdateError(FeedError):
    """The record changed between read and write (version token mismatch)."""
    error_type = ErrorType.CONFLICT_ERROR

    def __init__(self, file_key: str, expected_version: int):
        super().__init__(
            f"Feed record '{file_key}' was modified concurrently "
            f"(expected version {expected_version})",
            details={"file_key": file_key, "expected_version": expected_version},
        )


class RunTimeoutError(FeedError):
    error_type = ErrorType.TIMEOUT_ERROR

    def __init__(self, file_key: str, timeout_seconds: float):
        super().__init__(
            f"Feed generation for '{file_key}' timed out after {timeout_seconds} seconds",
            details={"file_key": file_key, "timeout": timeout_seconds},
        )


class RunAbandonedError(FeedError):
    """Recorded against runs left in processing past their deadline."""
    error_type = ErrorType.TIMEOUT_ERROR

    def __init__(self, file_key: str, timeout_seconds: float):
        super().__init__(
            f"Feed run for '{file_key}' was abandoned in processing "
            f"for more than {timeout_seconds} seconds",
            details={"file_key": file_key, "timeout": timeout_seconds},
        )


# =============================================================================
# Error Handler
# =============================================================================

class ErrorHandler:
    """Centralized error categorization and response mapping."""

    STATUS_CODES = {
        ErrorType.VALIDATION_ERROR: 400,
        ErrorType.UNSUPPORTED_PLATFORM: 400,
        ErrorType.NOT_FOUND_ERROR: 404,
        ErrorType.CONFLICT_ERROR: 409,
        ErrorType.CATALOG_ERROR: 502,
        ErrorType.STORAGE_ERROR: 502,
        ErrorType.TIMEOUT_ERROR: 504,
        ErrorType.INTERNAL_ERROR: 500,
    }

    @staticmethod
    def categorize_error(error: BaseException) -> ErrorType:
        """Categorize errors for appropriate handling."""
        if isinstance(error, FeedError):
            return ErrorType(error.error_type)
        if isinstance(error, (asyncio.TimeoutError, TimeoutError)):
            return ErrorType.TIMEOUT_ERROR
        if isinstance(error, (ValueError, TypeError)):
            return ErrorType.VALIDATION_ERROR
        return ErrorType.INTERNAL_ERROR

    @classmethod
    def to_response(
        cls,
        error: BaseException,
        expose_details: bool = True,
    ) -> tuple[int, dict[str, Any]]:
        """
        Map an error to a status code and response body.

        Args:
            error: The raised exception.
            expose_details: Include the raw message for unexpected errors.
                Production callers pass False.

        Returns:
            (status_code, body) tuple.
        """
        error_type = cls.categorize_error(error)
        status_code = cls.STATUS_CODES[error_type]

        if isinstance(error, FeedError) or expose_details:
            message = str(error)
        else:
            message = "An unexpected error occurred"

        body: dict[str, Any] = {
            "success": False,
            "error": error_type.value,
            "message": message,
        }
        if isinstance(error, ValidationError) and error.errors:
            body["errors"] = error.errors
        return status_code, body

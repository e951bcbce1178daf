"""Custom exceptions for the enrichment relay."""

import logging
from typing import Any

logger = logging.getLogger(__name__)

# Exception type → safe user-facing message mapping
_SAFE_MESSAGES: dict[str, str] = {
    "ValidationError": "The provided input is invalid. Please check and try again.",
    "UpstreamError": "Failed to connect to enrichment service",
    "DatabaseError": "A database error occurred. Please try again.",
    "CircuitBreakerOpen": "A service dependency is temporarily unavailable. Please try again in a moment.",
    "TimeoutError": "The enrichment service took too long to respond.",
}

_DEFAULT_MESSAGE = "An error occurred. Please try again."


def sanitize_error(e: Exception) -> str:
    """Map an exception to a safe, user-facing error message.

    Used for messages that leave the process (HTTP bodies and synthetic
    stream error frames); full details are only ever logged server-side.

    Args:
        e: The exception to sanitize.

    Returns:
        A safe, generic error message string.
    """
    # Walk the MRO to find the most specific matching type
    for cls in type(e).__mro__:
        safe_msg = _SAFE_MESSAGES.get(cls.__name__)
        if safe_msg:
            return safe_msg

    return _DEFAULT_MESSAGE


class EnrichmentError(Exception):
    """Base exception for all relay-specific errors."""

    def __init__(
        self,
        message: str,
        code: str,
        status_code: int = 400,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize relay exception.

        Args:
            message: Human-readable error message.
            code: Machine-readable error code.
            status_code: HTTP status code.
            details: Additional error details.
        """
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}


class ValidationError(EnrichmentError):
    """Input validation error (400)."""

    def __init__(
        self, message: str, field: str | None = None, details: dict[str, Any] | None = None
    ) -> None:
        """Initialize validation error.

        Args:
            message: Error message.
            field: Optional field that failed validation.
            details: Additional error details.
        """
        error_details = details or {}
        if field:
            error_details["field"] = field
        super().__init__(
            message=message,
            code="VALIDATION_ERROR",
            status_code=400,
            details=error_details,
        )


class UpstreamError(EnrichmentError):
    """Upstream enrichment service unreachable or failed (502)."""

    def __init__(self, message: str, upstream_status: int | None = None) -> None:
        """Initialize upstream error.

        Args:
            message: Error message returned to the caller.
            upstream_status: Status code the upstream answered with, if any.
        """
        super().__init__(
            message=message,
            code="UPSTREAM_ERROR",
            status_code=502,
            details={"upstream_status": upstream_status},
        )
        self.upstream_status = upstream_status


class DatabaseError(EnrichmentError):
    """Database operation error (500)."""

    def __init__(self, message: str = "Database operation failed") -> None:
        """Initialize database error.

        Args:
            message: Error message.
        """
        super().__init__(
            message=message,
            code="DATABASE_ERROR",
            status_code=500,
        )

"""
Error classification for the photodiary image proxy.

Every failure the pipeline can surface is a PhotoDiaryError subclass that
knows its category, HTTP status and client-facing message, so the API layer
renders all of them the same way.
"""

from enum import Enum
from typing import Any

from .logging_config import get_logger, log_error, log_security_event

logger = get_logger(__name__)


class ErrorCategory(Enum):
    """Error categories for classification and handling."""

    AUTHENTICATION = "authentication"
    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    UPSTREAM = "upstream"
    CONVERSION = "conversion"
    SYSTEM = "system"


class ErrorSeverity(Enum):
    """Error severity levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class PhotoDiaryError(Exception):
    """Base exception class for the photodiary application."""

    status_code = 500
    category = ErrorCategory.SYSTEM
    severity = ErrorSeverity.MEDIUM
    default_user_message = "An unexpected error occurred."

    def __init__(
        self,
        message: str,
        code: str | None = None,
        user_message: str | None = None,
        details: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        super().__init__(message)
        self.code = code or f"{self.category.value}_error"
        self.user_message = user_message or self.default_user_message
        self.details = details or {}
        self.original_exception = original_exception

        self._log_error()

    def _log_error(self) -> None:
        error_context = {
            "category": self.category.value,
            "severity": self.severity.value,
            "code": self.code,
            "status_code": self.status_code,
            **self.details,
        }
        if self.original_exception:
            error_context["original_exception"] = str(self.original_exception)

        log_error(self, error_context)

        if self.category is ErrorCategory.AUTHENTICATION:
            log_security_event(self.category.value, code=self.code)

    def to_response_body(self) -> dict[str, str]:
        """JSON body returned to API clients."""
        return {"error": self.user_message, "code": self.code}


class NotFoundError(PhotoDiaryError):
    """The requested asset does not exist or is not accessible."""

    status_code = 404
    category = ErrorCategory.NOT_FOUND
    severity = ErrorSeverity.LOW
    default_user_message = "File not accessible or does not exist"


class UnsupportedTypeError(PhotoDiaryError):
    """The requested asset is not an image."""

    status_code = 400
    category = ErrorCategory.VALIDATION
    severity = ErrorSeverity.LOW
    default_user_message = "File is not an image"


class AssetTooLargeError(PhotoDiaryError):
    """The asset exceeds the configured size ceiling."""

    status_code = 413
    category = ErrorCategory.VALIDATION
    severity = ErrorSeverity.MEDIUM
    default_user_message = "File is too large to be served"


class UpstreamError(PhotoDiaryError):
    """The source system is unreachable, timed out or returned an error."""

    status_code = 500
    category = ErrorCategory.UPSTREAM
    severity = ErrorSeverity.HIGH
    default_user_message = "Failed to fetch image"


class ConversionError(PhotoDiaryError):
    """A legacy-encoded image could not be converted to a standard format."""

    status_code = 500
    category = ErrorCategory.CONVERSION
    severity = ErrorSeverity.HIGH
    default_user_message = "Failed to convert image"


class AuthenticationError(PhotoDiaryError):
    """Missing, invalid or expired session."""

    status_code = 401
    category = ErrorCategory.AUTHENTICATION
    severity = ErrorSeverity.HIGH
    default_user_message = "Authentication required"

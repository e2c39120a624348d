"""Structured exception hierarchy for consistent error handling.

Key components:
- **ErrorCode enum**: Standardized error identifiers for programmatic handling
- **Severity enum**: Error classification for monitoring and alerting
- **ApiTemplateError**: Base exception with rich context and fingerprinting
- **Specialized exceptions**: Startup, binding and listener failures

Startup failures (``SchemaLoadError``, ``OperationBindingError``) abort the
process before the listener is started. ``ServerError`` is raised when the
listener stops on its own. Everything else is handled per request by the API
exception handlers.
"""

import hashlib
import traceback
from enum import Enum
from typing import Any


class ErrorCode(Enum):
    """Standardized error codes for the application."""

    INTERNAL_ERROR = "INTERNAL_ERROR"
    """An unexpected internal error occurred in the system."""

    NOT_FOUND = "NOT_FOUND"
    """The requested resource could not be found."""

    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"
    """The resource exists but does not support the request method."""

    SCHEMA_ERROR = "SCHEMA_ERROR"
    """The API description could not be loaded or serialized."""

    BINDING_ERROR = "BINDING_ERROR"
    """Declared operations and registered handlers do not match."""

    SERVER_ERROR = "SERVER_ERROR"
    """The HTTP listener failed to start or stopped unexpectedly."""


class Severity(Enum):
    """Severity levels used for logging and alerting."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class ApiTemplateError(Exception):
    """Base exception class for all application exceptions.

    Args:
        error_code: Unique identifier for the error type (string or ErrorCode enum)
        message: Human-readable error message
        severity: Severity level of the error (defaults to MEDIUM)
        context: Additional context information about the error
        cause: The original exception that caused this error
    """

    def __init__(
        self,
        error_code: str | ErrorCode,
        message: str,
        severity: Severity = Severity.MEDIUM,
        context: dict[str, Any] | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.error_code = (
            error_code.value if isinstance(error_code, ErrorCode) else error_code
        )
        self.message = message
        self.severity = severity
        self.context = context or {}
        self.cause = cause

        # Capture stack trace at creation time
        self.stack_trace = traceback.format_stack()[:-1]
        self.fingerprint = self._generate_fingerprint()

        super().__init__(message)
        if cause:
            self.__cause__ = cause

    def _generate_fingerprint(self) -> str:
        """Generate a fingerprint for error grouping.

        Returns:
            str: A hash of the error type, code and raising location.
        """
        max_frames = 5
        relevant_frames = self.stack_trace[-max_frames:]

        fingerprint_data = f"{self.__class__.__name__}:{self.error_code}"
        for frame in relevant_frames:
            if "site-packages" not in frame and "src/" in frame:
                lines = frame.strip().split("\n")
                if lines:
                    fingerprint_data += f":{lines[0]}"

        return hashlib.sha256(fingerprint_data.encode()).hexdigest()[:16]

    @property
    def is_expected(self) -> bool:
        """Whether the error belongs to normal operation (LOW or MEDIUM)."""
        return self.severity in (Severity.LOW, Severity.MEDIUM)

    def __str__(self) -> str:
        """Return a string representation of the exception.

        Returns:
            str: A formatted string containing the error code and message
        """
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        """Return a detailed representation of the exception."""
        class_name = self.__class__.__name__
        context_str = f", context={self.context}" if self.context else ""
        return (
            f"{class_name}(error_code='{self.error_code}', "
            f"message='{self.message}', severity={self.severity.value}{context_str})"
        )


class SchemaLoadError(ApiTemplateError):
    """Exception raised when the API description cannot be loaded or serialized.

    Raised during application assembly; the process must not start serving
    a partial API.
    """

    def __init__(
        self,
        message: str,
        error_code: str | ErrorCode = ErrorCode.SCHEMA_ERROR,
        context: dict[str, Any] | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(error_code, message, Severity.CRITICAL, context, cause)


class OperationBindingError(ApiTemplateError):
    """Exception raised when declared operations and handlers disagree."""

    def __init__(
        self,
        message: str,
        error_code: str | ErrorCode = ErrorCode.BINDING_ERROR,
        context: dict[str, Any] | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(error_code, message, Severity.CRITICAL, context, cause)


class ServerError(ApiTemplateError):
    """Exception raised when the HTTP listener fails to start or stops on its own."""

    def __init__(
        self,
        message: str,
        error_code: str | ErrorCode = ErrorCode.SERVER_ERROR,
        context: dict[str, Any] | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(error_code, message, Severity.CRITICAL, context, cause)

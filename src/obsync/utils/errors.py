"""Error handling framework for reconciliation operations."""

from typing import Optional, Dict, Any, List
from enum import Enum
from dataclasses import dataclass

import requests

from obsync.utils.logging import get_logger

logger = get_logger(__name__)


class ErrorCategory(Enum):
    """Categories of errors that can occur during reconciliation."""
    NOT_FOUND = "not_found"
    DECODE = "decode"
    TRANSPORT = "transport"
    CONFLICT = "conflict"
    NOT_IMPLEMENTED = "not_implemented"
    VALIDATION = "validation"
    CONFIGURATION = "configuration"
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Severity levels for errors."""
    CRITICAL = "critical"  # Run cannot continue
    ERROR = "error"  # Resource failed but the run can continue
    WARNING = "warning"  # Non-fatal issue
    INFO = "info"  # Informational message


@dataclass
class ErrorContext:
    """Context information for an error."""
    resource_id: Optional[str] = None
    resource_kind: Optional[str] = None
    operation: Optional[str] = None
    url: Optional[str] = None
    status: Optional[str] = None
    additional_info: Optional[Dict[str, Any]] = None


class ReconcileError(Exception):
    """Base exception for reconciliation errors."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None,
        suggestions: Optional[List[str]] = None
    ):
        """Initialize reconciliation error.

        Args:
            message: Human-readable error message
            category: Error category
            severity: Error severity
            context: Additional context about the error
            cause: Original exception that caused this error
            suggestions: List of suggested fixes
        """
        super().__init__(message)
        self.message = message
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.cause = cause
        self.suggestions = suggestions or []

    def to_user_message(self) -> str:
        """Convert error to user-friendly message.

        Returns:
            Formatted error message for display to user
        """
        lines = [f"{self.severity.value.upper()}: {self.message}"]

        if self.context.resource_id:
            lines.append(f"   Resource: {self.context.resource_id}")
        if self.context.operation:
            lines.append(f"   Operation: {self.context.operation}")
        if self.context.status:
            lines.append(f"   Status: {self.context.status}")

        if self.cause:
            lines.append(f"   Cause: {str(self.cause)}")

        if self.suggestions:
            lines.append("\nSuggested fixes:")
            for i, suggestion in enumerate(self.suggestions, 1):
                lines.append(f"   {i}. {suggestion}")

        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        return {
            'message': self.message,
            'category': self.category.value,
            'severity': self.severity.value,
            'context': {
                'resource_id': self.context.resource_id,
                'resource_kind': self.context.resource_kind,
                'operation': self.context.operation,
                'url': self.context.url,
                'status': self.context.status,
                'additional_info': self.context.additional_info
            },
            'cause': str(self.cause) if self.cause else None,
            'suggestions': self.suggestions
        }


class NotFoundError(ReconcileError):
    """The remote backend has no resource with the requested UID."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.NOT_FOUND,
            severity=ErrorSeverity.INFO,
            **kwargs
        )


class DecodeError(ReconcileError):
    """A declared or remote document does not have the expected shape."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.DECODE,
            severity=ErrorSeverity.ERROR,
            **kwargs
        )


class TransportError(ReconcileError):
    """Network failure or unexpected HTTP status from a backend."""

    def __init__(self, message: str, status_code: Optional[int] = None, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.TRANSPORT,
            severity=ErrorSeverity.ERROR,
            **kwargs
        )
        self.status_code = status_code


class ConflictError(ReconcileError):
    """Backend rejected a write with a precondition failure."""

    def __init__(self, message: str, backend_message: str = "", **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.CONFLICT,
            severity=ErrorSeverity.ERROR,
            **kwargs
        )
        self.backend_message = backend_message


class UnsupportedOperationError(ReconcileError):
    """Operation is not implemented for this resource kind."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.NOT_IMPLEMENTED,
            severity=ErrorSeverity.WARNING,
            **kwargs
        )


class DuplicateResourceError(ReconcileError):
    """Two declared resources resolve to the same key."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.VALIDATION,
            severity=ErrorSeverity.CRITICAL,
            **kwargs
        )


class ConfigurationError(ReconcileError):
    """Error in configuration file or settings."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.CONFIGURATION,
            severity=ErrorSeverity.CRITICAL,
            **kwargs
        )


class ErrorHandler:
    """Handles and categorizes errors raised while talking to backends."""

    # Suggestions keyed by HTTP status code
    HTTP_STATUS_SUGGESTIONS = {
        401: [
            'Check that the API token or credentials are set',
            'Verify the token has not expired',
        ],
        403: [
            'Verify the token has permission to write this resource kind',
            'Check the organisation or tenant the token belongs to',
        ],
        409: [
            'Another resource already uses this name or UID',
        ],
        412: [
            'The resource was modified remotely since it was read',
            'Re-run the apply to pick up the current remote version',
        ],
        500: [
            'Check the backend logs for the failing request',
        ],
        502: [
            'Check that the backend is reachable through any proxy',
        ],
        503: [
            'Wait a few moments and retry',
        ],
    }

    def __init__(self):
        """Initialize error handler."""
        self.logger = get_logger(__name__)

    def suggestions_for_status(self, status_code: int) -> List[str]:
        """Look up suggested fixes for an HTTP status code."""
        return list(self.HTTP_STATUS_SUGGESTIONS.get(status_code, []))

    def handle_exception(
        self,
        error: Exception,
        context: Optional[ErrorContext] = None
    ) -> ReconcileError:
        """Handle an exception and convert to ReconcileError.

        Args:
            error: The exception to handle
            context: Additional context about where the error occurred

        Returns:
            ReconcileError with categorization and suggestions
        """
        context = context or ErrorContext()

        if isinstance(error, ReconcileError):
            return error

        if isinstance(error, requests.exceptions.RequestException):
            return self._handle_request_error(error, context)

        if isinstance(error, (ConnectionError, TimeoutError)):
            return TransportError(
                message=f'Network error: {str(error)}',
                context=context,
                cause=error
            )

        return ReconcileError(
            message=str(error),
            category=ErrorCategory.UNKNOWN,
            severity=ErrorSeverity.ERROR,
            context=context,
            cause=error,
            suggestions=['Check logs for more details']
        )

    def _handle_request_error(
        self,
        error: requests.exceptions.RequestException,
        context: ErrorContext
    ) -> TransportError:
        """Handle errors raised by the requests library.

        Args:
            error: The requests exception
            context: Error context

        Returns:
            TransportError
        """
        if isinstance(error, requests.exceptions.Timeout):
            suggestions = [
                'The backend did not answer in time',
                'Wrap the run with a retry policy if the backend is slow',
            ]
        elif isinstance(error, requests.exceptions.ConnectionError):
            suggestions = [
                'Check the backend URL in configuration',
                'Check your network connection and any proxy settings',
            ]
        else:
            suggestions = []

        return TransportError(
            message=f'Request to {context.url or "backend"} failed: {str(error)}',
            context=context,
            cause=error,
            suggestions=suggestions
        )

    def log_error(self, error: ReconcileError):
        """Log an error with appropriate level.

        Args:
            error: The error to log
        """
        log_message = error.to_user_message()

        if error.severity in (ErrorSeverity.CRITICAL, ErrorSeverity.ERROR):
            self.logger.error(log_message)
        elif error.severity == ErrorSeverity.WARNING:
            self.logger.warning(log_message)
        else:
            self.logger.info(log_message)

        self.logger.debug(f"Error details: {error.to_dict()}")


# Global error handler instance
error_handler = ErrorHandler()

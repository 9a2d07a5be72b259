"""Utility modules for logging, errors and backend HTTP access."""

from obsync.utils.errors import (
    ErrorCategory,
    ErrorSeverity,
    ErrorContext,
    ReconcileError,
    NotFoundError,
    DecodeError,
    TransportError,
    ConflictError,
    UnsupportedOperationError,
    DuplicateResourceError,
    ConfigurationError,
    ErrorHandler,
    error_handler
)
from obsync.utils.logging import get_logger, setup_logging

__all__ = [
    # Errors
    'ErrorCategory',
    'ErrorSeverity',
    'ErrorContext',
    'ReconcileError',
    'NotFoundError',
    'DecodeError',
    'TransportError',
    'ConflictError',
    'UnsupportedOperationError',
    'DuplicateResourceError',
    'ConfigurationError',
    'ErrorHandler',
    'error_handler',

    # Logging
    'get_logger',
    'setup_logging',
]

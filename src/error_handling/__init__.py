"""
Error handling module for the booking flow engine.

This module provides error handling infrastructure including:
- Error codes and the custom exception hierarchy
- User-facing error message generation
- Conversion of exceptions into BookingError records
- Logging utilities

Main Components:
    - exceptions: Custom exception classes and BookingErrorCode
    - error_messages: User-friendly messages and next-action hints
    - handlers: Decorators and conversion utilities
    - logging_config: loguru configuration
"""

from .exceptions import (
    BookingErrorCode,

    # Base exceptions
    BookingSystemError,

    # Flow errors
    NavigationBlockedError,
    StateTransitionError,
    InvalidConfigError,

    # Submission errors
    SubmissionError,
    ProviderLoadError,
    ProviderTimeoutError,
    InvalidServiceError,
    RateLimitError,
    NetworkError,
    FormValidationError,
    CalendarUnavailableError,
    BookingConflictError,

    # Storage errors
    StorageError,
)

from .error_messages import (
    get_error_message,
    suggest_next_action,
)

from .handlers import (
    resolve_error_code,
    to_booking_error,
    graceful_degradation,
    log_error_with_context,
)

from .logging_config import (
    configure_logging,
    init_logging,
    log_booking_event,
    log_flow_event,
    LogContext,
)

__all__ = [
    "BookingErrorCode",

    # Exceptions - Base
    "BookingSystemError",

    # Exceptions - Flow
    "NavigationBlockedError",
    "StateTransitionError",
    "InvalidConfigError",

    # Exceptions - Submission
    "SubmissionError",
    "ProviderLoadError",
    "ProviderTimeoutError",
    "InvalidServiceError",
    "RateLimitError",
    "NetworkError",
    "FormValidationError",
    "CalendarUnavailableError",
    "BookingConflictError",

    # Exceptions - Storage
    "StorageError",

    # Error Messages
    "get_error_message",
    "suggest_next_action",

    # Error Handlers
    "resolve_error_code",
    "to_booking_error",
    "graceful_degradation",
    "log_error_with_context",

    # Logging
    "configure_logging",
    "init_logging",
    "log_booking_event",
    "log_flow_event",
    "LogContext",
]

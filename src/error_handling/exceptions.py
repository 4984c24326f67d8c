"""
Custom Exception Classes for the Booking Flow Engine.

This module defines exception classes for different error categories:
- Flow Errors (navigation, phase transitions, configuration)
- Submission Errors (provider, network, calendar and form failures)
- Storage Errors (client storage unavailable or full)

Each exception carries a ``BookingErrorCode`` plus context for recovery
and logging.
"""

from enum import Enum
from typing import Optional, Any, Dict


class BookingErrorCode(str, Enum):
    """Error codes surfaced to the host through ``BookingError.code``."""

    NAVIGATION_BLOCKED = "navigation-blocked"
    PROVIDER_LOAD_FAILED = "provider-load-failed"
    PROVIDER_TIMEOUT = "provider-timeout"
    INVALID_SERVICE = "invalid-service"
    INVALID_CONFIG = "invalid-config"
    RATE_LIMITED = "rate-limited"
    NETWORK_ERROR = "network-error"
    FORM_VALIDATION_ERROR = "form-validation-error"
    CALENDAR_UNAVAILABLE = "calendar-unavailable"
    BOOKING_CONFLICT = "booking-conflict"

    def __str__(self) -> str:
        return self.value


class BookingSystemError(Exception):
    """Base exception for all booking flow errors."""

    code: BookingErrorCode = BookingErrorCode.NETWORK_ERROR

    def __init__(
        self,
        message: str,
        user_message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        recoverable: bool = True
    ):
        """
        Initialize booking system error.

        Args:
            message: Technical error message for logging
            user_message: User-friendly message for display
            context: Additional context for error recovery
            recoverable: Whether the error is recoverable
        """
        super().__init__(message)
        self.message = message
        self.user_message = user_message or message
        self.context = context or {}
        self.recoverable = recoverable


# ============================================================================
# Flow Errors
# ============================================================================

class NavigationBlockedError(BookingSystemError):
    """
    Raised when a step transition is refused by the navigation guard.

    Navigation failures are recovered locally: the controller keeps its
    current step and reports ``reason`` to the caller.
    """

    code = BookingErrorCode.NAVIGATION_BLOCKED

    def __init__(
        self,
        reason: str,
        from_index: Optional[int] = None,
        to_index: Optional[int] = None,
        **kwargs
    ):
        context = {"from_index": from_index, "to_index": to_index, **kwargs}
        super().__init__(reason, context=context, recoverable=True)
        self.reason = reason
        self.from_index = from_index
        self.to_index = to_index


class StateTransitionError(BookingSystemError):
    """Raised when an invalid session phase transition is attempted."""

    code = BookingErrorCode.NAVIGATION_BLOCKED

    def __init__(
        self,
        message: str,
        from_phase: Optional[str] = None,
        to_phase: Optional[str] = None,
        **kwargs
    ):
        context = {"from_phase": from_phase, "to_phase": to_phase, **kwargs}
        super().__init__(message, context=context, recoverable=True)
        self.from_phase = from_phase
        self.to_phase = to_phase


class InvalidConfigError(BookingSystemError):
    """
    Raised when a flow configuration is invalid.

    Examples:
    - Duplicate step ids
    - Required/optional ids that do not exist in the step list
    - Unknown archetype when strict resolution is enabled
    """

    code = BookingErrorCode.INVALID_CONFIG

    def __init__(self, message: str, errors: Optional[list] = None, **kwargs):
        context = {"errors": errors or [], **kwargs}
        super().__init__(message, context=context, recoverable=False)
        self.errors = errors or []


# ============================================================================
# Submission Errors
# ============================================================================

class SubmissionError(BookingSystemError):
    """
    Raised by submission functions when a booking cannot be completed.

    Subclasses pin the ``code``; host submitters raise them to choose
    which error the flow reports.
    """

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        service: Optional[str] = None,
        original_error: Optional[Exception] = None,
        **kwargs
    ):
        """
        Initialize submission error.

        Args:
            message: Error message
            provider: Calendar/booking provider name
            service: Service being booked
            original_error: Original exception if any
            **kwargs: Additional context
        """
        context = {
            "provider": provider,
            "service": service,
            "original_error": str(original_error) if original_error else None,
            **kwargs
        }
        super().__init__(message, context=context, recoverable=True)
        self.provider = provider
        self.service = service
        self.original_error = original_error


class ProviderLoadError(SubmissionError):
    """Raised when the calendar provider widget or API fails to load."""

    code = BookingErrorCode.PROVIDER_LOAD_FAILED


class ProviderTimeoutError(SubmissionError):
    """Raised when the provider does not answer in time."""

    code = BookingErrorCode.PROVIDER_TIMEOUT

    def __init__(self, message: str = "Booking provider timed out", timeout_seconds: Optional[float] = None, **kwargs):
        super().__init__(message, timeout_seconds=timeout_seconds, **kwargs)
        self.timeout_seconds = timeout_seconds


class InvalidServiceError(SubmissionError):
    """Raised when the requested service is unknown to the provider."""

    code = BookingErrorCode.INVALID_SERVICE


class RateLimitError(SubmissionError):
    """Raised when the provider rejects the request due to rate limiting."""

    code = BookingErrorCode.RATE_LIMITED


class NetworkError(SubmissionError):
    """Raised when the provider cannot be reached."""

    code = BookingErrorCode.NETWORK_ERROR


class FormValidationError(SubmissionError):
    """Raised when submitted form data is rejected."""

    code = BookingErrorCode.FORM_VALIDATION_ERROR

    def __init__(self, message: str, fields: Optional[Dict[str, str]] = None, **kwargs):
        super().__init__(message, fields=fields or {}, **kwargs)
        self.fields = fields or {}


class CalendarUnavailableError(SubmissionError):
    """Raised when the calendar has no capacity for the request."""

    code = BookingErrorCode.CALENDAR_UNAVAILABLE


class BookingConflictError(SubmissionError):
    """Raised when the chosen slot was taken before submission completed."""

    code = BookingErrorCode.BOOKING_CONFLICT


# ============================================================================
# Storage Errors
# ============================================================================

class StorageError(BookingSystemError):
    """
    Raised by key/value stores when the storage layer fails.

    Examples:
    - Quota exceeded
    - Storage disabled
    - Database unavailable

    Never escapes ``PersistenceStore``; persistence is best-effort.
    """

    def __init__(self, message: str, key: Optional[str] = None, original_error: Optional[Exception] = None):
        context = {
            "key": key,
            "original_error": str(original_error) if original_error else None,
        }
        super().__init__(message, context=context, recoverable=True)
        self.key = key
        self.original_error = original_error

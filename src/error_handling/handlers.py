"""
Centralized error handling utilities for the booking flow.

This module provides utilities for:
- Converting exceptions into ``BookingError`` records
- Graceful degradation of best-effort operations (storage)
- Error logging with context
"""
import asyncio
import functools
from typing import Optional, Callable, Any, Dict

from loguru import logger

from .exceptions import (
    BookingErrorCode,
    BookingSystemError,
    SubmissionError,
)


def resolve_error_code(error: BaseException) -> BookingErrorCode:
    """
    Map an exception to a booking error code.

    Typed booking exceptions carry their own code; ``asyncio.TimeoutError``
    maps to ``provider-timeout`` and anything else to ``network-error``.

    Args:
        error: Exception raised during submission or provider loading

    Returns:
        BookingErrorCode for the failure
    """
    if isinstance(error, BookingSystemError):
        return error.code
    if isinstance(error, (asyncio.TimeoutError, TimeoutError)):
        return BookingErrorCode.PROVIDER_TIMEOUT
    return BookingErrorCode.NETWORK_ERROR


def to_booking_error(
    error: BaseException,
    phase: str,
    provider: Optional[str] = None,
    service: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Build the fields of a ``BookingError`` from an exception.

    Args:
        error: Exception that occurred
        phase: Session phase in which it occurred
        provider: Provider in use, if any
        service: Service being booked, if any

    Returns:
        Dictionary with ``code``, ``message``, ``provider``, ``service`` and
        ``context`` keys
    """
    if isinstance(error, SubmissionError):
        provider = error.provider or provider
        service = error.service or service

    message = str(error) or type(error).__name__
    if isinstance(error, (asyncio.TimeoutError, TimeoutError)) and not str(error):
        message = "Booking provider timed out"

    return {
        "code": resolve_error_code(error).value,
        "message": message,
        "provider": provider,
        "service": service,
        "context": phase,
    }


def graceful_degradation(
    fallback_func: Optional[Callable] = None,
    fallback_value: Any = None,
    log_message: Optional[str] = None
):
    """
    Decorator for graceful degradation when function fails.

    Args:
        fallback_func: Function to call if main function fails
        fallback_value: Value to return if main function fails
        log_message: Custom log message for degradation

    Returns:
        Decorated function with fallback logic
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except Exception as e:
                message = log_message or f"Function {func.__name__} failed, using fallback"
                logger.warning(f"{message}: {str(e)}")

                if fallback_func:
                    try:
                        return fallback_func(*args, **kwargs)
                    except Exception as fallback_error:
                        logger.error(f"Fallback also failed: {str(fallback_error)}")
                        return fallback_value

                return fallback_value

        return wrapper
    return decorator


def log_error_with_context(
    error: BaseException,
    context: Dict[str, Any],
    severity: str = "ERROR"
) -> None:
    """
    Log an error with full context information.

    Args:
        error: Exception that occurred
        context: Context dictionary with relevant information
        severity: Log severity (ERROR, WARNING, CRITICAL)
    """
    recoverable = error.recoverable if isinstance(error, BookingSystemError) else False
    logger.bind(category="ERROR", **context).log(
        severity,
        f"Error occurred: {type(error).__name__}: {str(error)} | recoverable={recoverable}"
    )

"""
User-facing error message generation for the booking flow.

Blocked navigation is shown inline next to the progress indicator, while a
failed submission switches the flow into its error state. This module turns
error codes and exceptions into short messages and suggests what the UI
should offer next.
"""
from typing import Union

from loguru import logger

from .exceptions import BookingErrorCode, BookingSystemError, NavigationBlockedError


USER_MESSAGES = {
    BookingErrorCode.NAVIGATION_BLOCKED: "Please finish the current step before moving on.",
    BookingErrorCode.PROVIDER_LOAD_FAILED: "We couldn't load the booking calendar. Please try again in a moment.",
    BookingErrorCode.PROVIDER_TIMEOUT: "The booking calendar took too long to respond. Please try again.",
    BookingErrorCode.INVALID_SERVICE: "That service isn't available for online booking.",
    BookingErrorCode.INVALID_CONFIG: "This booking form is misconfigured. Please contact us directly.",
    BookingErrorCode.RATE_LIMITED: "Too many booking attempts. Please wait a minute and try again.",
    BookingErrorCode.NETWORK_ERROR: "We couldn't reach the booking service. Check your connection and try again.",
    BookingErrorCode.FORM_VALIDATION_ERROR: "Some details need attention before we can book your session.",
    BookingErrorCode.CALENDAR_UNAVAILABLE: "There are no open times right now. Please pick another day.",
    BookingErrorCode.BOOKING_CONFLICT: "That time was just taken. Please choose another slot.",
}

NEXT_ACTIONS = {
    BookingErrorCode.NAVIGATION_BLOCKED: "complete_step",
    BookingErrorCode.PROVIDER_LOAD_FAILED: "restart",
    BookingErrorCode.PROVIDER_TIMEOUT: "restart",
    BookingErrorCode.INVALID_SERVICE: "contact",
    BookingErrorCode.INVALID_CONFIG: "contact",
    BookingErrorCode.RATE_LIMITED: "retry_later",
    BookingErrorCode.NETWORK_ERROR: "restart",
    BookingErrorCode.FORM_VALIDATION_ERROR: "fix_fields",
    BookingErrorCode.CALENDAR_UNAVAILABLE: "pick_another_time",
    BookingErrorCode.BOOKING_CONFLICT: "pick_another_time",
}

DEFAULT_MESSAGE = "Something went wrong with your booking. Please try again."


def _coerce_code(value: Union[str, BookingErrorCode]) -> BookingErrorCode | None:
    try:
        return BookingErrorCode(value)
    except ValueError:
        return None


def get_error_message(error: Union[Exception, str, BookingErrorCode]) -> str:
    """
    Get a user-friendly message for an error or error code.

    Navigation errors keep their own reason since it names the step the
    user still has to finish.

    Args:
        error: Exception instance or ``BookingErrorCode`` value

    Returns:
        Message suitable for display in the booking UI
    """
    if isinstance(error, NavigationBlockedError):
        return error.reason

    if isinstance(error, BookingSystemError):
        return USER_MESSAGES.get(error.code, error.user_message)

    if isinstance(error, Exception):
        logger.debug(f"No user message for {type(error).__name__}, using default")
        return DEFAULT_MESSAGE

    code = _coerce_code(error)
    if code is None:
        logger.warning(f"Unknown booking error code: {error}")
        return DEFAULT_MESSAGE
    return USER_MESSAGES[code]


def suggest_next_action(error: Union[Exception, str, BookingErrorCode]) -> str:
    """
    Suggest the recovery action the UI should offer.

    Args:
        error: Exception instance or ``BookingErrorCode`` value

    Returns:
        One of ``complete_step``, ``restart``, ``retry_later``, ``fix_fields``,
        ``pick_another_time`` or ``contact``
    """
    if isinstance(error, BookingSystemError):
        code = error.code
    elif isinstance(error, Exception):
        return "restart"
    else:
        code = _coerce_code(error)
    return NEXT_ACTIONS.get(code, "restart")

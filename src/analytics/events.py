"""
Analytics event names for the booking funnel.

Every event is dispatched as ``(name, payload)``; payload keys are camelCase.
"""
from enum import Enum


DOMAIN = "booking"


class BookingEvent(str, Enum):
    """Event names emitted by the booking flow."""

    VIEW = "booking_view"
    """A booking session started (also emitted on restart)."""

    MODAL_OPEN = "booking_modal_open"
    MODAL_CLOSE = "booking_modal_close"

    FORM_STEP = "booking_form_step"
    """The user moved between steps; payload has step, stepName, direction."""

    PHASE_CHANGE = "booking_phase_change"
    """The coarse session phase changed; payload has fromPhase, toPhase."""

    PROVIDER_LOAD = "booking_provider_load"
    PROVIDER_ERROR = "booking_provider_error"

    SUBMIT = "booking_submit"
    SUCCESS = "booking_success"
    ERROR = "booking_error"
    """Submission or provider failure; payload has code, message, provider."""

    ABANDON = "booking_abandon"
    """The session was abandoned; payload has reason, step, timeSpent."""

    MODE_DECISION = "booking_mode_decision"

    def __str__(self) -> str:
        return self.value


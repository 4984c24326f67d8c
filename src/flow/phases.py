"""
Session phase definitions for the booking flow.

This module defines the coarse lifecycle of a booking session. Fine-grained
progress lives in the step list; the phase says which part of the journey the
user is in.
"""

from enum import Enum


class BookingSessionPhase(str, Enum):
    """
    Enum representing the lifecycle of a booking session.

    The session flows linearly through these phases:
    initial -> selecting -> form -> calendar -> confirming -> submitting
    -> success | error

    ``submitting``, ``success`` and ``error`` are only entered through
    submission; ``success`` and ``error`` are terminal.
    """

    INITIAL = "initial"
    """Session created, nothing chosen yet."""

    SELECTING = "selecting"
    """The user is choosing a service."""

    FORM = "form"
    """The user is answering requirements."""

    CALENDAR = "calendar"
    """The user is picking a time slot."""

    CONFIRMING = "confirming"
    """Reviewing the booking before submission."""

    SUBMITTING = "submitting"
    """The injected submission function is in flight."""

    SUCCESS = "success"
    """Booking confirmed."""

    ERROR = "error"
    """Submission or provider failure."""

    def __str__(self) -> str:
        """Return the string value of the phase."""
        return self.value

    @classmethod
    def get_ordered_phases(cls) -> list['BookingSessionPhase']:
        """
        Get the linear progression order of phases.

        Returns:
            List of BookingSessionPhase in expected order
        """
        return [
            cls.INITIAL,
            cls.SELECTING,
            cls.FORM,
            cls.CALENDAR,
            cls.CONFIRMING,
            cls.SUBMITTING,
            cls.SUCCESS,
            cls.ERROR,
        ]

    @classmethod
    def submission_phases(cls) -> frozenset:
        """Phases that only submission may enter."""
        return frozenset({cls.SUBMITTING, cls.SUCCESS, cls.ERROR})

    @property
    def is_terminal(self) -> bool:
        return self in (BookingSessionPhase.SUCCESS, BookingSessionPhase.ERROR)

    @property
    def order(self) -> int:
        return self.get_ordered_phases().index(self)

    def get_next_phase(self) -> 'BookingSessionPhase':
        """
        Get the next user-driven phase.

        Returns:
            Next BookingSessionPhase in the flow

        Raises:
            ValueError: If there is no user-driven phase after this one
        """
        ordered = self.get_ordered_phases()
        current_index = ordered.index(self)
        candidate = ordered[current_index + 1] if current_index < len(ordered) - 1 else None

        if candidate is None or candidate in self.submission_phases():
            raise ValueError(f"{self.value} has no user-driven next phase")

        return candidate

    def get_previous_phase(self) -> 'BookingSessionPhase':
        """
        Get the previous phase in linear progression.

        Returns:
            Previous BookingSessionPhase in the flow

        Raises:
            ValueError: If called on INITIAL or a submission phase
        """
        if self is BookingSessionPhase.INITIAL:
            raise ValueError("INITIAL phase has no previous phase")
        if self in self.submission_phases():
            raise ValueError(f"Cannot step back from {self.value}")

        ordered = self.get_ordered_phases()
        return ordered[ordered.index(self) - 1]

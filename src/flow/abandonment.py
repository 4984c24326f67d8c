"""
Abandonment detection for booking sessions.

This module handles:
- Idle timeout, re-armed by user activity
- Page exit (best effort, analytics only)
- Reporting abandonment at most once per tracker
"""
from typing import Callable, Optional

from loguru import logger

from models.schemas import AbandonmentReport
from .clock import Clock, TimerHandle


ACTIVITY_SIGNALS = frozenset({"pointer", "key", "scroll", "touch"})

REASON_TIMEOUT = "timeout"
REASON_PAGE_UNLOAD = "page_unload"


class AbandonmentTracker:
    """
    Watches one session for inactivity and page exit.

    The tracker does not know the flow's state; it asks the owner through
    ``is_terminal`` and ``build_report`` at the moment it fires. A fired
    tracker never fires again; the controller creates a new one on restart.
    """

    def __init__(
        self,
        clock: Clock,
        is_terminal: Callable[[], bool],
        build_report: Callable[[str], AbandonmentReport],
        on_timeout: Callable[[AbandonmentReport], None],
        on_page_exit: Optional[Callable[[AbandonmentReport], None]] = None,
        timeout_seconds: float = 300.0,
    ):
        """
        Initialize abandonment tracker.

        Args:
            clock: Timer source
            is_terminal: Returns True once the session reached success/error
            build_report: Builds a report for the given reason
            on_timeout: Receives the report when the idle timer expires
            on_page_exit: Receives the report on page exit (analytics only)
            timeout_seconds: Idle time before the session counts as abandoned
        """
        self.clock = clock
        self.timeout_seconds = timeout_seconds
        self._is_terminal = is_terminal
        self._build_report = build_report
        self._on_timeout = on_timeout
        self._on_page_exit = on_page_exit

        self._timer: Optional[TimerHandle] = None
        self._fired = False
        self.last_activity_at: Optional[float] = None

    @property
    def fired(self) -> bool:
        return self._fired

    @property
    def armed(self) -> bool:
        return self._timer is not None

    def arm(self) -> None:
        """Start (or restart) the idle timer."""
        if self._fired:
            logger.debug("Abandonment tracker already fired, not re-arming")
            return

        self._cancel_timer()
        self.last_activity_at = self.clock.now()
        self._timer = self.clock.call_later(self.timeout_seconds, self._handle_timeout)

    def record_activity(self, signal: str) -> bool:
        """
        Reset the idle timer on user activity.

        Args:
            signal: One of ``pointer``, ``key``, ``scroll``, ``touch``

        Returns:
            True if the timer was re-armed
        """
        if signal not in ACTIVITY_SIGNALS:
            logger.debug(f"Ignoring unknown activity signal: {signal}")
            return False
        if self._fired or self._timer is None:
            return False

        self.arm()
        return True

    def disarm(self) -> None:
        """Cancel the idle timer without reporting."""
        self._cancel_timer()

    def handle_page_exit(self) -> Optional[AbandonmentReport]:
        """
        Report abandonment because the page is closing.

        The owner's timeout callback is never invoked; only ``on_page_exit``
        (an analytics flush) receives the report.

        Returns:
            The report, or None if the session is terminal or already reported
        """
        if self._fired or self._is_terminal():
            return None

        self._fired = True
        self._cancel_timer()

        report = self._build_report(REASON_PAGE_UNLOAD)
        logger.info(f"Session {report.session_id} abandoned on page exit at step {report.step_id}")

        if self._on_page_exit is not None:
            self._on_page_exit(report)
        return report

    def _handle_timeout(self) -> None:
        self._timer = None
        if self._fired:
            return
        if self._is_terminal():
            logger.debug("Idle timer expired on a terminal session, ignoring")
            return

        self._fired = True
        report = self._build_report(REASON_TIMEOUT)
        logger.warning(
            f"Session {report.session_id} idle for {self.timeout_seconds}s, "
            f"abandoned at step {report.step_id} ({report.completion_percentage}% complete)"
        )
        self._on_timeout(report)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

"""
Modal vs full-page presentation decision.

The decision is a pure function of the options passed in; ``resolve`` is the
only entry point that reads an EnvironmentProbe.
"""
from typing import Any, Dict, Optional

from loguru import logger

from models.schemas import BookingMode, BookingModeOptions, BookingPageContext, ModeDecision
from .environment import (
    EnvironmentProbe,
    detect_booking_context,
    in_services_hierarchy,
    is_leaf_service,
)


DEFAULT_BREAKPOINT = 768

REASON_FORCED = "forced"
REASON_MULTIPLE_MEETING_TYPES = "Multiple meeting types require full page"
REASON_REDUCED_MOTION = "Reduced motion preference"
REASON_A11Y_MODE = "Accessibility mode enabled"
REASON_OUTSIDE_SERVICES = "Outside services hierarchy"
REASON_SMALL_SCREEN = "Small screen size"
REASON_LEAF_SERVICE = "Leaf service on desktop - modal for low friction"
REASON_DIRECTORY = "Directory page - full page for complete options"


class ModeDecisionEngine:
    """
    Chooses between the inline modal and the full booking page.

    Order of precedence:
    1. A forced mode always wins.
    2. Multiple meeting types, reduced motion or accessibility mode -> page.
    3. Outside the services hierarchy -> page.
    4. Viewport narrower than the breakpoint -> page.
    5. Leaf service -> modal, otherwise page.

    Args:
        default_breakpoint: Breakpoint used when options do not carry one
    """

    def __init__(self, default_breakpoint: int = DEFAULT_BREAKPOINT):
        self.default_breakpoint = default_breakpoint

    def _choose(self, options: BookingModeOptions, breakpoint: int) -> tuple:
        if options.force_mode is not None:
            return options.force_mode, REASON_FORCED
        if options.has_multiple_meeting_types:
            return BookingMode.PAGE, REASON_MULTIPLE_MEETING_TYPES
        if options.prefers_reduced_motion:
            return BookingMode.PAGE, REASON_REDUCED_MOTION
        if options.a11y_mode:
            return BookingMode.PAGE, REASON_A11Y_MODE
        if not options.in_services_hierarchy:
            return BookingMode.PAGE, REASON_OUTSIDE_SERVICES
        if options.viewport_width < breakpoint:
            return BookingMode.PAGE, REASON_SMALL_SCREEN
        if options.is_leaf_service:
            return BookingMode.MODAL, REASON_LEAF_SERVICE
        return BookingMode.PAGE, REASON_DIRECTORY

    def decide(
        self,
        options: BookingModeOptions,
        context: Optional[BookingPageContext] = None,
    ) -> ModeDecision:
        """
        Decide the presentation mode.

        Args:
            options: Contextual signals
            context: Optional page context added to the analytics fields

        Returns:
            ModeDecision with mode, reason and analytics fields
        """
        breakpoint = options.breakpoint or self.default_breakpoint
        mode, reason = self._choose(options, breakpoint)

        analytics: Dict[str, Any] = {
            "mode": mode.value,
            "reason": reason,
            "viewportWidth": options.viewport_width,
            "breakpoint": breakpoint,
        }
        if context is not None:
            analytics.update({
                "context": context.pathname,
                "level": context.level,
                "serviceSlug": context.service_slug,
                "hubSlug": context.hub_slug,
                "source": context.source,
            })

        logger.debug(f"Booking mode decided: {mode.value} ({reason})")
        return ModeDecision(mode=mode, reason=reason, analytics=analytics)

    def resolve(self, probe: EnvironmentProbe, **overrides: Any) -> ModeDecision:
        """
        Decide the mode from environment signals.

        Args:
            probe: Source of pathname, viewport and accessibility signals
            **overrides: Any BookingModeOptions field, e.g.
                         ``has_multiple_meeting_types=True`` or ``force_mode="modal"``

        Returns:
            ModeDecision
        """
        pathname = probe.pathname()
        context = detect_booking_context(pathname, source=overrides.pop("source", None))

        fields: Dict[str, Any] = {
            "in_services_hierarchy": in_services_hierarchy(pathname),
            "is_leaf_service": is_leaf_service(context),
            "has_multiple_meeting_types": False,
            "prefers_reduced_motion": probe.prefers_reduced_motion(),
            "a11y_mode": probe.a11y_mode(),
            "viewport_width": probe.viewport_width(),
        }
        fields.update(overrides)

        return self.decide(BookingModeOptions(**fields), context)

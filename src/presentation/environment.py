"""
Environment signals for the presentation-mode decision.

The decision engine never reads the host environment itself; the host passes
an ``EnvironmentProbe`` (or plain values) instead.
"""
import re
from typing import Optional, Protocol

from models.schemas import BookingPageContext


DEFAULT_VIEWPORT_WIDTH = 1024

_SERVICES_PATH = re.compile(r"^/services(?:/([^/]+))?(?:/([^/]+))?(?:/([^/]+))?")


class EnvironmentProbe(Protocol):
    """Read-only view of the host environment."""

    def pathname(self) -> str:
        ...

    def viewport_width(self) -> int:
        ...

    def prefers_reduced_motion(self) -> bool:
        ...

    def a11y_mode(self) -> bool:
        ...


class StaticEnvironmentProbe:
    """
    Probe returning fixed values; used by servers and tests.

    Args:
        pathname: Path of the page that triggered the booking
        viewport_width: Viewport width in pixels
        prefers_reduced_motion: Reduced motion preference
        a11y_mode: Accessibility mode (screen reader, high contrast)
    """

    def __init__(
        self,
        pathname: str = "/",
        viewport_width: int = DEFAULT_VIEWPORT_WIDTH,
        prefers_reduced_motion: bool = False,
        a11y_mode: bool = False,
    ):
        self._pathname = pathname
        self._viewport_width = viewport_width
        self._prefers_reduced_motion = prefers_reduced_motion
        self._a11y_mode = a11y_mode

    def pathname(self) -> str:
        return self._pathname

    def viewport_width(self) -> int:
        return self._viewport_width

    def prefers_reduced_motion(self) -> bool:
        return self._prefers_reduced_motion

    def a11y_mode(self) -> bool:
        return self._a11y_mode


def detect_booking_context(pathname: str, source: Optional[str] = None) -> BookingPageContext:
    """
    Locate a page inside the services hierarchy.

    ``/services/<hub>`` is L1, ``/services/<hub>/<service>`` is L2 and
    ``/services/<hub>/<service>/<sub>`` is L3. Other paths have no level.

    Args:
        pathname: Page path
        source: Optional trigger source recorded on the context

    Returns:
        BookingPageContext
    """
    context = BookingPageContext(pathname=pathname, source=source)

    match = _SERVICES_PATH.match(pathname or "")
    if not match or not in_services_hierarchy(pathname):
        return context

    hub, service, sub = match.groups()
    context.hub_slug = hub
    context.service_slug = service
    context.sub_slug = sub

    if sub:
        context.level = "L3"
    elif service:
        context.level = "L2"
    elif hub:
        context.level = "L1"

    return context


def in_services_hierarchy(pathname: str) -> bool:
    return pathname == "/services" or (pathname or "").startswith("/services/")


def is_leaf_service(context: BookingPageContext) -> bool:
    """
    Whether the page books a single service rather than offering a directory.

    L3 pages are always leaves; L2 pages are leaves unless they list packages.
    """
    if context.level == "L3":
        return True
    return context.level == "L2" and "/packages" not in context.pathname

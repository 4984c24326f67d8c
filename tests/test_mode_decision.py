"""
Unit tests for the modal vs page decision and page context detection.
"""
import pytest

from models.schemas import BookingMode, BookingModeOptions
from presentation import (
    ModeDecisionEngine,
    StaticEnvironmentProbe,
    detect_booking_context,
    in_services_hierarchy,
    is_leaf_service,
)
from presentation.mode import (
    REASON_A11Y_MODE,
    REASON_DIRECTORY,
    REASON_FORCED,
    REASON_LEAF_SERVICE,
    REASON_MULTIPLE_MEETING_TYPES,
    REASON_OUTSIDE_SERVICES,
    REASON_REDUCED_MOTION,
    REASON_SMALL_SCREEN,
)


LEAF_DESKTOP = dict(in_services_hierarchy=True, is_leaf_service=True, viewport_width=1280)


@pytest.fixture
def engine():
    return ModeDecisionEngine()


class TestDecide:
    """Test ModeDecisionEngine.decide precedence."""

    def test_leaf_service_on_desktop_is_modal(self, engine):
        decision = engine.decide(BookingModeOptions(**LEAF_DESKTOP))

        assert decision.mode == BookingMode.MODAL
        assert decision.reason == REASON_LEAF_SERVICE

    @pytest.mark.parametrize("overrides,reason", [
        ({"has_multiple_meeting_types": True}, REASON_MULTIPLE_MEETING_TYPES),
        ({"prefers_reduced_motion": True}, REASON_REDUCED_MOTION),
        ({"a11y_mode": True}, REASON_A11Y_MODE),
        ({"in_services_hierarchy": False}, REASON_OUTSIDE_SERVICES),
        ({"viewport_width": 767}, REASON_SMALL_SCREEN),
        ({"is_leaf_service": False}, REASON_DIRECTORY),
    ])
    def test_page_reasons(self, engine, overrides, reason):
        decision = engine.decide(BookingModeOptions(**{**LEAF_DESKTOP, **overrides}))

        assert decision.mode == BookingMode.PAGE
        assert decision.reason == reason

    def test_breakpoint_boundary_is_modal(self, engine):
        decision = engine.decide(BookingModeOptions(**{**LEAF_DESKTOP, "viewport_width": 768}))

        assert decision.mode == BookingMode.MODAL

    def test_custom_breakpoint(self, engine):
        decision = engine.decide(BookingModeOptions(**{**LEAF_DESKTOP, "viewport_width": 1000, "breakpoint": 1024}))

        assert decision.reason == REASON_SMALL_SCREEN
        assert decision.analytics["breakpoint"] == 1024

    @pytest.mark.parametrize("forced", ["modal", "page"])
    def test_forced_mode_short_circuits(self, engine, forced):
        options = BookingModeOptions(
            has_multiple_meeting_types=True,
            a11y_mode=True,
            viewport_width=320,
            force_mode=forced,
        )

        decision = engine.decide(options)

        assert decision.mode == BookingMode(forced)
        assert decision.reason == REASON_FORCED

    def test_is_deterministic(self, engine):
        options = BookingModeOptions(**LEAF_DESKTOP)

        assert engine.decide(options) == engine.decide(options)

    def test_analytics_fields(self, engine):
        decision = engine.decide(BookingModeOptions(**LEAF_DESKTOP))

        assert decision.analytics == {
            "mode": "modal",
            "reason": REASON_LEAF_SERVICE,
            "viewportWidth": 1280,
            "breakpoint": 768,
        }


class TestResolve:
    """Test ModeDecisionEngine.resolve with an environment probe."""

    def test_leaf_page_on_desktop(self, engine):
        probe = StaticEnvironmentProbe("/services/web-development-services/websites", viewport_width=1280)

        decision = engine.resolve(probe, source="hero")

        assert decision.mode == BookingMode.MODAL
        assert decision.analytics["level"] == "L2"
        assert decision.analytics["serviceSlug"] == "websites"
        assert decision.analytics["hubSlug"] == "web-development-services"
        assert decision.analytics["source"] == "hero"

    def test_hub_page_is_full_page(self, engine):
        decision = engine.resolve(StaticEnvironmentProbe("/services/web-development-services", 1280))

        assert decision.mode == BookingMode.PAGE
        assert decision.reason == REASON_DIRECTORY

    def test_reduced_motion_from_probe(self, engine):
        probe = StaticEnvironmentProbe("/services/a/b", 1280, prefers_reduced_motion=True)

        assert engine.resolve(probe).reason == REASON_REDUCED_MOTION

    def test_overrides(self, engine):
        probe = StaticEnvironmentProbe("/services/a/b", 1280)

        decision = engine.resolve(probe, has_multiple_meeting_types=True)

        assert decision.reason == REASON_MULTIPLE_MEETING_TYPES


class TestBookingContext:
    """Test page context detection."""

    @pytest.mark.parametrize("pathname,level,hub,service,sub", [
        ("/services/web", "L1", "web", None, None),
        ("/services/web/sites", "L2", "web", "sites", None),
        ("/services/web/sites/shop", "L3", "web", "sites", "shop"),
        ("/about", None, None, None, None),
        ("/servicesxyz/web", None, None, None, None),
    ])
    def test_levels(self, pathname, level, hub, service, sub):
        context = detect_booking_context(pathname)

        assert (context.level, context.hub_slug, context.service_slug, context.sub_slug) == (level, hub, service, sub)

    def test_services_hierarchy(self):
        assert in_services_hierarchy("/services") is True
        assert in_services_hierarchy("/services/web") is True
        assert in_services_hierarchy("/servicesxyz") is False
        assert in_services_hierarchy("/") is False

    def test_leaf_detection(self):
        assert is_leaf_service(detect_booking_context("/services/web/sites/shop")) is True
        assert is_leaf_service(detect_booking_context("/services/web/sites")) is True
        assert is_leaf_service(detect_booking_context("/services/web/packages")) is False
        assert is_leaf_service(detect_booking_context("/services/web/packages-2024")) is False
        assert is_leaf_service(detect_booking_context("/services/web/packages/")) is False
        assert is_leaf_service(detect_booking_context("/services/web")) is False

"""
Unit tests for the analytics emitter.
"""
import pytest

from analytics import DOMAIN, AnalyticsEmitter, BookingEvent


@pytest.fixture
def emitter(clock, dispatcher):
    return AnalyticsEmitter(session_id="booking_abc", clock=clock, dispatcher=dispatcher)


class TestEmit:
    """Test payload enrichment and dispatcher handling."""

    def test_enriches_every_payload(self, emitter, dispatcher):
        assert emitter.emit(BookingEvent.VIEW, {"totalSteps": 4}) is True

        name, payload = dispatcher.events[0]
        assert name == "booking_view"
        assert payload["totalSteps"] == 4
        assert payload["sessionId"] == "booking_abc"
        assert payload["domain"] == DOMAIN == "booking"
        assert payload["timestamp"] == "2023-11-14T22:13:20.000Z"

    def test_merge_order(self, emitter, dispatcher):
        """Payload wins over context, context over the base context."""
        emitter.base_context = {"service": "base", "variant": "base"}

        emitter.emit("custom_event", {"variant": "payload", "sessionId": "spoofed"}, context={"service": "context"})

        payload = dispatcher.events[0][1]
        assert payload["service"] == "context"
        assert payload["variant"] == "payload"
        assert payload["sessionId"] == "booking_abc"

    def test_without_dispatcher_is_noop(self, clock):
        emitter = AnalyticsEmitter(session_id="booking_abc", clock=clock)

        assert emitter.has_dispatcher is False
        assert emitter.emit(BookingEvent.VIEW) is False

    def test_failing_dispatcher_is_swallowed(self, clock):
        def broken(event, payload):
            raise RuntimeError("backend down")

        emitter = AnalyticsEmitter(session_id="booking_abc", clock=clock, dispatcher=broken)

        assert emitter.emit(BookingEvent.VIEW) is False

    def test_set_and_clear_dispatcher(self, clock, dispatcher):
        emitter = AnalyticsEmitter(clock=clock)
        emitter.set_dispatcher(dispatcher)
        emitter.emit(BookingEvent.VIEW)

        emitter.clear_dispatcher()
        emitter.emit(BookingEvent.VIEW)

        assert len(dispatcher.events) == 1

    def test_create_context_omits_unset_fields(self, emitter):
        context = emitter.create_context(service="seo", source="hero", referrer=None, archetype="simple")

        assert context == {"service": "seo", "source": "hero", "archetype": "simple"}


class TestFunnelHelpers:
    """Test the event-specific payloads."""

    def test_form_step(self, emitter, dispatcher):
        emitter.track_form_step(step=2, step_name="contact-info", direction="backward")
        emitter.track_form_step(step=1)

        first, second = dispatcher.of("booking_form_step")
        assert (first["step"], first["stepName"], first["direction"]) == (2, "contact-info", "backward")
        assert second["stepName"] == "step_1"
        assert second["direction"] == "forward"

    def test_error_carries_code_message_provider(self, emitter, dispatcher):
        emitter.track_error(code="network-error", message="offline", provider="calcom", step="confirmation")

        payload = dispatcher.last("booking_error")
        assert payload["code"] == "network-error"
        assert payload["message"] == "offline"
        assert payload["provider"] == "calcom"
        assert payload["step"] == "confirmation"

    def test_success_is_a_conversion(self, emitter, dispatcher):
        emitter.track_success(provider="calcom", event_id="event_1")

        payload = dispatcher.last("booking_success")
        assert payload["provider"] == "calcom"
        assert payload["eventId"] == "event_1"
        assert payload["conversion"] is True

    def test_submit_lists_fields(self, emitter, dispatcher):
        emitter.track_submit(fields_present=["name", "email"])

        payload = dispatcher.last("booking_submit")
        assert payload["fieldsPresent"] == ["email", "name"]
        assert payload["fieldsCount"] == 2

    def test_abandon_defaults_step(self, emitter, dispatcher):
        emitter.track_abandon(reason="timeout", time_spent=12.5, completion_percentage=50)

        payload = dispatcher.last("booking_abandon")
        assert payload["step"] == "unknown"
        assert payload["timeSpent"] == 12.5
        assert payload["completionPercentage"] == 50

    def test_modal_and_provider_events(self, emitter, dispatcher):
        emitter.track_modal_open(trigger="cta")
        emitter.track_modal_close()
        emitter.track_provider_load("calcom", 420)
        emitter.track_provider_error("calcom", "provider-load-failed", "script blocked")
        emitter.track_phase_change("form", "calendar")
        emitter.track_mode_decision({"mode": "modal", "reason": "forced"})

        assert dispatcher.names() == [
            "booking_modal_open",
            "booking_modal_close",
            "booking_provider_load",
            "booking_provider_error",
            "booking_phase_change",
            "booking_mode_decision",
        ]
        assert dispatcher.last("booking_modal_close")["reason"] == "unknown"
        assert dispatcher.last("booking_provider_load")["loadTimeMs"] == 420
        assert dispatcher.last("booking_phase_change")["toPhase"] == "calendar"
        assert dispatcher.last("booking_mode_decision")["mode"] == "modal"

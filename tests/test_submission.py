"""
Tests for booking submission through the FlowController.

Tests:
- Successful submission records the result and finishes the session
- Failures, timeouts and invalid confirmations record a BookingError
- Navigation is locked while submitting and after finishing
- Restart during submission discards the late result
- Provider load failures
"""
import asyncio

import pytest

from error_handling.exceptions import BookingConflictError, InvalidConfigError, StateTransitionError
from flow import BookingSessionPhase
from models.schemas import StepStatus


class GatedSubmitter:
    """Submitter that waits until the test releases it."""

    def __init__(self, result):
        self.result = result
        self.release = asyncio.Event()
        self.calls = []

    async def __call__(self, form_data):
        self.calls.append(form_data)
        await self.release.wait()
        return self.result


def _submitter_returning(result):
    calls = []

    async def submit(form_data):
        calls.append(form_data)
        return result

    submit.calls = calls
    return submit


class TestSuccessfulSubmission:
    """Test the success path."""

    @pytest.mark.asyncio
    async def test_success(self, clock, make_controller, dispatcher, booking_result, memory_store):
        successes = []
        submitter = _submitter_returning(booking_result)
        controller = make_controller(submitter=submitter, on_success=successes.append, provider="calcom")
        controller.update_form_data({"name": "Ada"})
        controller.save_progress()

        result = await controller.submit_booking({"email": "ada@example.com"})

        assert result == booking_result
        assert controller.phase == BookingSessionPhase.SUCCESS
        assert controller.result == booking_result
        assert controller.error is None
        assert successes == [booking_result]
        assert submitter.calls == [{"name": "Ada", "email": "ada@example.com"}]
        assert controller.steps[0].status == StepStatus.COMPLETED
        assert len(memory_store) == 0

        phases = [p["toPhase"] for p in dispatcher.of("booking_phase_change")]
        assert phases[-2:] == ["submitting", "success"]
        submit_payload = dispatcher.last("booking_submit")
        assert submit_payload["fieldsPresent"] == ["email", "name"]
        success_payload = dispatcher.last("booking_success")
        assert success_payload["eventId"] == "event_123"
        assert success_payload["provider"] == "calcom"
        assert success_payload["conversion"] is True

    @pytest.mark.asyncio
    async def test_mapping_result_is_validated(self, make_controller):
        submitter = _submitter_returning({
            "provider": "calcom",
            "service": "seo-audit",
            "eventId": "event_9",
            "scheduledAt": "2030-02-01T09:00:00Z",
            "timezone": "Europe/London",
        })
        controller = make_controller(submitter=submitter)

        result = await controller.submit_booking()

        assert result.event_id == "event_9"
        assert result.attendee_email is None
        assert controller.phase == BookingSessionPhase.SUCCESS

    @pytest.mark.asyncio
    async def test_terminal_session_stops_timers(self, clock, make_controller, booking_result):
        abandoned = []
        controller = make_controller(submitter=_submitter_returning(booking_result), on_abandon=abandoned.append)
        clock.advance(2)

        await controller.submit_booking()
        clock.advance(1000)

        assert controller.ticking is False
        assert controller.state.time_spent_seconds == 2
        assert clock.pending == 0
        assert abandoned == []
        assert controller.handle_page_exit() is None

    @pytest.mark.asyncio
    async def test_finished_session_is_locked(self, make_controller, booking_result):
        controller = make_controller(submitter=_submitter_returning(booking_result))
        await controller.submit_booking()

        assert controller.next_step().reason == "Booking flow has finished"
        assert controller.go_back() is False
        with pytest.raises(StateTransitionError):
            controller.advance_phase()
        with pytest.raises(StateTransitionError):
            await controller.submit_booking()

        controller.restart()

        assert controller.phase == BookingSessionPhase.INITIAL
        assert controller.result is None


class TestFailedSubmission:
    """Test failure paths."""

    @pytest.mark.asyncio
    async def test_submitter_exception(self, make_controller, dispatcher):
        errors = []

        async def conflict(form_data):
            raise BookingConflictError("Slot already booked", provider="calcom")

        controller = make_controller(submitter=conflict, on_error=errors.append)
        controller.advance_phase(BookingSessionPhase.CONFIRMING)

        result = await controller.submit_booking()

        assert result is None
        assert controller.phase == BookingSessionPhase.ERROR
        assert controller.error.code == "booking-conflict"
        assert controller.error.message == "Slot already booked"
        assert controller.error.provider == "calcom"
        assert controller.error.context == "submitting"
        assert errors == [controller.error]

        payload = dispatcher.last("booking_error")
        assert payload["code"] == "booking-conflict"
        assert payload["message"] == "Slot already booked"
        assert payload["provider"] == "calcom"
        assert payload["phase"] == "submitting"
        assert [p["toPhase"] for p in dispatcher.of("booking_phase_change")][-2:] == ["submitting", "error"]

    @pytest.mark.asyncio
    async def test_timeout(self, settings, make_controller):
        async def slow(form_data):
            await asyncio.sleep(5)

        controller = make_controller(
            submitter=slow,
            settings=settings.model_copy(update={"submission_timeout_seconds": 0.01}),
        )

        assert await controller.submit_booking() is None
        assert controller.error.code == "provider-timeout"
        assert controller.error.message == "Booking provider timed out"

    @pytest.mark.asyncio
    async def test_generic_exception_is_network_error(self, make_controller):
        async def offline(form_data):
            raise ConnectionError("connection refused")

        controller = make_controller(submitter=offline)

        await controller.submit_booking()

        assert controller.error.code == "network-error"
        assert controller.error.message == "connection refused"

    @pytest.mark.asyncio
    async def test_invalid_confirmation(self, make_controller):
        controller = make_controller(submitter=_submitter_returning({"provider": "calcom"}))

        assert await controller.submit_booking() is None
        assert controller.phase == BookingSessionPhase.ERROR
        assert controller.error.message == "Booking provider returned an invalid confirmation"

    @pytest.mark.asyncio
    async def test_missing_submitter(self, make_controller):
        controller = make_controller()

        with pytest.raises(InvalidConfigError):
            await controller.submit_booking()
        assert controller.phase == BookingSessionPhase.INITIAL

    @pytest.mark.asyncio
    async def test_restart_after_error(self, make_controller):
        async def offline(form_data):
            raise ConnectionError("offline")

        controller = make_controller(submitter=offline)
        await controller.submit_booking()
        failed_session = controller.session_id

        controller.restart()

        assert controller.phase == BookingSessionPhase.INITIAL
        assert controller.error is None
        assert controller.session_id != failed_session
        assert controller.ticking is True


class TestInFlightSubmission:
    """Test behaviour while the submitter is pending."""

    @pytest.mark.asyncio
    async def test_navigation_locked_while_submitting(self, make_controller, booking_result):
        submitter = GatedSubmitter(booking_result)
        controller = make_controller(submitter=submitter)
        task = asyncio.create_task(controller.submit_booking())
        await asyncio.sleep(0)

        assert controller.is_submitting is True
        assert controller.next_step().reason == "Navigation is disabled while submitting"
        assert controller.complete_current_step().allowed is False
        assert controller.go_back() is False
        with pytest.raises(StateTransitionError):
            controller.advance_phase()
        with pytest.raises(StateTransitionError):
            await controller.submit_booking()

        submitter.release.set()
        result = await task

        assert result == booking_result
        assert controller.phase == BookingSessionPhase.SUCCESS

    @pytest.mark.asyncio
    async def test_restart_discards_late_result(self, make_controller, booking_result):
        successes = []
        submitter = GatedSubmitter(booking_result)
        controller = make_controller(submitter=submitter, on_success=successes.append)
        task = asyncio.create_task(controller.submit_booking())
        await asyncio.sleep(0)

        controller.restart()
        submitter.release.set()
        result = await task

        assert result is None
        assert successes == []
        assert controller.phase == BookingSessionPhase.INITIAL
        assert controller.result is None

    @pytest.mark.asyncio
    async def test_dispose_discards_late_failure(self, make_controller):
        errors = []
        release = asyncio.Event()

        async def failing(form_data):
            await release.wait()
            raise ConnectionError("offline")

        controller = make_controller(submitter=failing, on_error=errors.append)
        task = asyncio.create_task(controller.submit_booking())
        await asyncio.sleep(0)

        controller.dispose()
        release.set()

        assert await task is None
        assert errors == []


class TestProviderEvents:
    """Test provider load hooks."""

    def test_provider_load(self, make_controller, dispatcher):
        controller = make_controller()

        controller.handle_provider_load("calcom", 350)

        payload = dispatcher.last("booking_provider_load")
        assert payload["provider"] == "calcom"
        assert payload["loadTimeMs"] == 350
        assert controller.provider == "calcom"

    def test_provider_error_fails_session(self, make_controller, dispatcher):
        errors = []
        controller = make_controller(on_error=errors.append)
        controller.advance_phase(BookingSessionPhase.CALENDAR)

        error = controller.handle_provider_error("calcom", "Embed script blocked")

        assert controller.phase == BookingSessionPhase.ERROR
        assert error.code == "provider-load-failed"
        assert error.context == "calendar"
        assert errors == [error]
        assert dispatcher.last("booking_provider_error")["message"] == "Embed script blocked"
        assert dispatcher.last("booking_error")["code"] == "provider-load-failed"

    def test_provider_error_ignored_when_finished(self, make_controller):
        controller = make_controller()
        controller.handle_provider_error("calcom", "first")

        assert controller.handle_provider_error("calcom", "second") is None
        assert controller.error.message == "first"

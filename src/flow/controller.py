"""
Flow controller for orchestrating a booking session.

This module provides the FlowController class that manages:
- Session phase transitions (initial -> ... -> success | error)
- Step navigation through the NavigationGuard
- Conditional step re-evaluation when form data changes
- Submission through an injected async function
- Abandonment tracking, snapshot auto-save and the elapsed-time tick
- Analytics events and change notifications
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Tuple, Union

from loguru import logger
from pydantic import ValidationError

from analytics.emitter import AnalyticsEmitter, Dispatcher
from config import Settings, get_settings
from error_handling.exceptions import BookingErrorCode, InvalidConfigError, StateTransitionError
from error_handling.handlers import log_error_with_context, to_booking_error
from error_handling.logging_config import log_booking_event, log_flow_event
from models.schemas import (
    AbandonmentReport,
    BookingError,
    BookingResult,
    FlowConfiguration,
    NavigationResult,
    PersistedSnapshot,
    Step,
    StepStatus,
)
from persistence.progress_store import PersistenceStore

from .abandonment import AbandonmentTracker
from .clock import AsyncioClock, Clock, TimerHandle, epoch_millis
from .completion import completion_percentage, time_remaining
from .conditional import apply_conditional_rules
from .navigation import NavigationGuard
from .phases import BookingSessionPhase
from .state import FlowState, generate_session_id


Submitter = Callable[[Dict[str, Any]], Awaitable[Union[BookingResult, Mapping[str, Any]]]]
Listener = Callable[["FlowController"], None]


class FlowController:
    """
    Orchestrates one booking session.

    The controller owns exactly one FlowState and one BookingSessionPhase.
    All mutation happens through its methods; observers registered with
    ``subscribe`` are notified after every change.

    Attributes:
        configuration: Flow configuration the session was built from
        phase: Current coarse session phase
        state: Fine-grained progress (steps, form data, timings)
        result: BookingResult once the session succeeded
        error: BookingError once the session failed
    """

    def __init__(
        self,
        configuration: FlowConfiguration,
        submitter: Optional[Submitter] = None,
        clock: Optional[Clock] = None,
        store: Optional[PersistenceStore] = None,
        emitter: Optional[AnalyticsEmitter] = None,
        dispatcher: Optional[Dispatcher] = None,
        settings: Optional[Settings] = None,
        on_success: Optional[Callable[[BookingResult], None]] = None,
        on_error: Optional[Callable[[BookingError], None]] = None,
        on_abandon: Optional[Callable[[AbandonmentReport], None]] = None,
        initial_form_data: Optional[Dict[str, Any]] = None,
        variant: Optional[str] = None,
        provider: Optional[str] = None,
        source: Optional[str] = None,
    ):
        """
        Initialize the controller and start the session.

        Args:
            configuration: Output of ``resolve_flow_configuration`` or ``create_flow``
            submitter: Async function receiving the form data and returning a
                       BookingResult (or a mapping with its fields)
            clock: Time source and timer scheduler. The default AsyncioClock
                   schedules on the running event loop, so a controller built
                   without a clock must be created inside a coroutine
            store: Snapshot store; persistence is skipped when None
            emitter: Analytics emitter (default: a new one owned by this controller)
            dispatcher: Analytics dispatcher registered on the emitter
            settings: Timing settings (default: ``get_settings()``)
            on_success: Called with the BookingResult after a successful submission
            on_error: Called with the BookingError after a failure
            on_abandon: Called with the report when the idle timer expires
            initial_form_data: Data used to evaluate conditional rules at start
            variant: Booking variant recorded in analytics
            provider: Calendar provider recorded in analytics and errors
            source: Trigger source recorded in analytics
        """
        self.configuration = configuration
        self.submitter = submitter
        self.settings = settings or get_settings()
        self.clock: Clock = clock or AsyncioClock()
        self.store = store
        self.emitter = emitter or AnalyticsEmitter(clock=self.clock)
        if dispatcher is not None:
            self.emitter.set_dispatcher(dispatcher)

        self.on_success = on_success
        self.on_error = on_error
        self.on_abandon = on_abandon

        self.variant = variant
        self.provider = provider
        self.source = source

        self.phase = BookingSessionPhase.INITIAL
        self.result: Optional[BookingResult] = None
        self.error: Optional[BookingError] = None
        self.abandonment: Optional[AbandonmentReport] = None

        self._listeners: List[Listener] = []
        self._generation = 0
        self._disposed = False
        self._tick_handle: Optional[TimerHandle] = None
        self._autosave_handle: Optional[TimerHandle] = None
        self.tracker: Optional[AbandonmentTracker] = None

        self.state = self._new_state(dict(initial_form_data or {}))
        self._start_session()

        logger.info(
            f"FlowController initialized: archetype={configuration.archetype}, "
            f"steps={self.state.step_ids()}, session={self.state.session_id}"
        )

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def session_id(self) -> str:
        return self.state.session_id

    @property
    def steps(self) -> List[Step]:
        return list(self.state.steps)

    @property
    def current_step_index(self) -> int:
        return self.state.current_step_index

    @property
    def current_step(self) -> Optional[Step]:
        return self.state.current_step

    @property
    def form_data(self) -> Dict[str, Any]:
        return dict(self.state.form_data)

    @property
    def completion_percentage(self) -> int:
        return self.state.completion_percentage

    @property
    def time_remaining(self) -> float:
        return time_remaining(self.state.steps, self.state.current_step_index)

    @property
    def is_terminal(self) -> bool:
        return self.phase.is_terminal

    @property
    def is_submitting(self) -> bool:
        return self.phase == BookingSessionPhase.SUBMITTING

    @property
    def disposed(self) -> bool:
        return self._disposed

    def get_summary(self) -> Dict[str, Any]:
        """
        Get a summary of session progress.

        Returns:
            Dictionary with phase, step, completion and remaining time
        """
        summary = self.state.get_summary()
        summary.update({
            "phase": str(self.phase),
            "archetype": str(self.configuration.archetype),
            "time_spent_seconds": self.state.time_spent_seconds,
            "time_remaining_seconds": self.time_remaining,
        })
        return summary

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a change listener.

        Args:
            listener: Called with this controller after every change

        Returns:
            Function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    def _build_steps(self, form_data: Mapping[str, Any]) -> List[Step]:
        base = [definition.to_step() for definition in self.configuration.steps]
        return apply_conditional_rules(base, self.configuration.conditional_rules, form_data)

    def _new_state(self, form_data: Dict[str, Any]) -> FlowState:
        now = self.clock.now()
        steps = self._build_steps(form_data)
        if steps:
            steps[0] = steps[0].model_copy(update={"status": StepStatus.CURRENT})

        return FlowState(
            session_id=generate_session_id(),
            steps=steps,
            current_step_index=0,
            completion_percentage=completion_percentage(steps),
            started_at=now,
            current_step_entered_at=now,
            navigation_history=[0] if steps else [],
            form_data=form_data,
        )

    def _refresh_analytics_context(self) -> None:
        self.emitter.session_id = self.state.session_id
        self.emitter.base_context = self.emitter.create_context(
            service=self.configuration.service,
            variant=self.variant,
            source=self.source,
            archetype=str(self.configuration.archetype),
            provider=self.provider,
        )

    def _start_session(self, **view_fields: Any) -> None:
        self._refresh_analytics_context()

        self.tracker = AbandonmentTracker(
            clock=self.clock,
            is_terminal=lambda: self.phase.is_terminal,
            build_report=self._build_abandonment_report,
            on_timeout=self._handle_abandonment_timeout,
            on_page_exit=self._handle_page_exit_report,
            timeout_seconds=self.settings.idle_timeout_seconds,
        )
        if self.settings.track_abandonment:
            self.tracker.arm()

        self._schedule_tick()
        self.emitter.track_view(totalSteps=len(self.state.steps), **view_fields)
        log_flow_event("STARTED", self.state.session_id, str(self.phase), {"archetype": str(self.configuration.archetype)})

    def restart(self) -> None:
        """
        Start a new session from scratch.

        Resets the phase to ``initial``, generates a new session id, clears
        form data and step progress, clears the saved snapshot and starts
        fresh timers. A submission still in flight is not cancelled; its
        result is discarded when it arrives.
        """
        if self._disposed:
            logger.warning("restart() called on a disposed controller")
            return

        old_session = self.state.session_id
        old_phase = self.phase

        self._generation += 1
        self._cancel_timers()

        self.phase = BookingSessionPhase.INITIAL
        self.result = None
        self.error = None
        self.abandonment = None
        self.state = self._new_state({})

        if self.store is not None:
            self.store.clear()

        self._start_session(action="restart", previousSessionId=old_session)
        logger.info(f"Session {old_session} restarted from {old_phase} as {self.state.session_id}")
        self._notify()

    def dispose(self) -> None:
        """Cancel every timer and drop the dispatcher and all listeners."""
        if self._disposed:
            return

        self._disposed = True
        self._generation += 1
        self._cancel_timers()
        self.emitter.clear_dispatcher()
        self._listeners.clear()
        logger.debug(f"FlowController for session {self.state.session_id} disposed")

    def _cancel_timers(self) -> None:
        self._stop_tick()
        if self._autosave_handle is not None:
            self._autosave_handle.cancel()
            self._autosave_handle = None
        if self.tracker is not None:
            self.tracker.disarm()

    # ------------------------------------------------------------------
    # Elapsed-time tick
    # ------------------------------------------------------------------

    def _schedule_tick(self) -> None:
        self._stop_tick()
        self._tick_handle = self.clock.call_later(self.settings.tick_interval_seconds, self._tick)

    def _stop_tick(self) -> None:
        if self._tick_handle is not None:
            self._tick_handle.cancel()
            self._tick_handle = None

    def _tick(self) -> None:
        self._tick_handle = None
        if self._disposed or self.phase.is_terminal:
            return

        self.state.time_spent_seconds = max(int(self.clock.now() - self.state.started_at), 0)
        self._notify()
        self._schedule_tick()

    @property
    def ticking(self) -> bool:
        return self._tick_handle is not None

    # ------------------------------------------------------------------
    # Phase machine
    # ------------------------------------------------------------------

    def can_advance_to(self, target: BookingSessionPhase) -> Tuple[bool, str]:
        """
        Check if a user-driven phase transition is valid.

        Args:
            target: Phase to move to

        Returns:
            Tuple of (is_valid, reason). If valid, reason is empty string.
        """
        current = self.phase

        if self._disposed:
            return False, "Flow has been disposed"
        if current.is_terminal:
            return False, f"Cannot leave terminal phase {current}"
        if current == BookingSessionPhase.SUBMITTING:
            return False, "Cannot change phase while submitting"
        if target in BookingSessionPhase.submission_phases():
            return False, f"Phase {target} is entered only through submission"
        if target.order <= current.order:
            return False, f"Cannot move from {current} back to {target}; use go_back()"
        return True, ""

    def advance_phase(self, target: Optional[BookingSessionPhase] = None) -> BookingSessionPhase:
        """
        Move the session forward to ``target`` (default: the next phase).

        Args:
            target: Phase to move to

        Returns:
            The new phase

        Raises:
            StateTransitionError: If the transition is not valid
        """
        if target is None:
            try:
                target = self.phase.get_next_phase()
            except ValueError as e:
                raise StateTransitionError(str(e), from_phase=str(self.phase))
        target = BookingSessionPhase(target)

        can_transition, reason = self.can_advance_to(target)
        if not can_transition:
            logger.warning(f"Invalid phase transition from {self.phase} to {target}: {reason}")
            raise StateTransitionError(reason, from_phase=str(self.phase), to_phase=str(target))

        self._set_phase(target)
        return target

    def go_back(self) -> bool:
        """
        Move the phase one step earlier.

        Refused at ``initial``, while submitting and in terminal phases.

        Returns:
            True if the phase changed
        """
        if self._disposed:
            return False
        try:
            previous = self.phase.get_previous_phase()
        except ValueError as e:
            logger.debug(f"go_back refused: {e}")
            return False

        self._set_phase(previous)
        return True

    def _set_phase(self, new_phase: BookingSessionPhase) -> None:
        old_phase = self.phase
        self.phase = new_phase

        if new_phase.is_terminal:
            self._stop_tick()
            if self.tracker is not None:
                self.tracker.disarm()
            self.state.time_spent_seconds = max(int(self.clock.now() - self.state.started_at), 0)

        logger.info(f"Phase transition: {old_phase} -> {new_phase}")
        log_flow_event("PHASE_CHANGE", self.state.session_id, str(new_phase), {"from": str(old_phase)})
        self.emitter.track_phase_change(old_phase, new_phase)
        self._notify()

    # ------------------------------------------------------------------
    # Step navigation
    # ------------------------------------------------------------------

    def _navigation_refusal(self) -> Optional[str]:
        if self._disposed:
            return "Flow has been disposed"
        if self.phase == BookingSessionPhase.SUBMITTING:
            return "Navigation is disabled while submitting"
        if self.phase.is_terminal:
            return "Booking flow has finished"
        return None

    def go_to_step(self, index: int) -> NavigationResult:
        """
        Navigate to a step chosen by the user.

        Args:
            index: Destination step index

        Returns:
            NavigationResult; when not allowed nothing changes and ``reason``
            says why
        """
        return self._navigate(index, require_clickable=True)

    def next_step(self) -> NavigationResult:
        """Advance to the following step (non-clickable steps may be reached)."""
        return self._navigate(self.state.current_step_index + 1, require_clickable=False)

    def previous_step(self) -> NavigationResult:
        return self._navigate(self.state.current_step_index - 1, require_clickable=True)

    def _navigate(self, index: int, require_clickable: bool) -> NavigationResult:
        refusal = self._navigation_refusal()
        if refusal:
            return NavigationResult(allowed=False, reason=refusal)

        steps = self.state.steps
        current_index = self.state.current_step_index

        result = NavigationGuard.validate(current_index, index, steps, require_clickable=require_clickable)
        if result.allowed and index > current_index:
            # The step being left counts as an intermediate step too
            departing = steps[current_index]
            if departing.status == StepStatus.ERROR:
                result = NavigationResult(
                    allowed=False,
                    reason=departing.error_message or f"{departing.label} has an error",
                )
            elif not departing.optional and departing.status != StepStatus.COMPLETED:
                result = NavigationResult(
                    allowed=False,
                    reason=f"Must complete {departing.label} before proceeding",
                )

        if not result.allowed:
            logger.debug(f"Navigation {current_index} -> {index} blocked: {result.reason}")
            return result

        if index == current_index:
            return result

        forward = index > current_index
        skipped = set(result.skipped_optional_indices)
        updated: List[Step] = []
        for position, step in enumerate(steps):
            if position == index:
                step = step.model_copy(update={"status": StepStatus.CURRENT, "error_message": None})
            elif position in skipped:
                step = step.model_copy(update={"status": StepStatus.SKIPPED})
            elif position == current_index and step.status == StepStatus.CURRENT:
                departing_status = StepStatus.SKIPPED if forward and step.optional else StepStatus.PENDING
                step = step.model_copy(update={"status": departing_status})
            updated.append(step)

        if forward and steps[current_index].optional and steps[current_index].status == StepStatus.CURRENT:
            result.skipped_optional_indices = sorted(skipped | {current_index})

        self._apply_steps(updated, index)
        self.emitter.track_form_step(
            step=index,
            step_name=updated[index].id,
            direction="forward" if forward else "backward",
            timeSpent=self.state.time_spent_seconds,
        )
        self._notify()
        return result

    def _apply_steps(self, steps: List[Step], current_index: int) -> None:
        """Install a new step list and derived fields, then schedule auto-save."""
        if current_index != self.state.current_step_index:
            self.state.navigation_history.append(current_index)
            self.state.current_step_entered_at = self.clock.now()

        self.state.steps = steps
        self.state.current_step_index = current_index
        self.state.completion_percentage = completion_percentage(steps)
        self._schedule_autosave()

    def complete_current_step(self) -> NavigationResult:
        """
        Mark the current step completed and advance to the next one.

        On the last step the step is completed and the index stays put.

        Returns:
            NavigationResult of the advance
        """
        refusal = self._navigation_refusal()
        if refusal:
            return NavigationResult(allowed=False, reason=refusal)

        index = self.state.current_step_index
        current = self.state.steps[index]
        if current.status == StepStatus.ERROR:
            return NavigationResult(
                allowed=False,
                reason=current.error_message or f"{current.label} has an error",
            )

        steps = list(self.state.steps)
        steps[index] = current.model_copy(update={"status": StepStatus.COMPLETED, "error_message": None})
        self._apply_steps(steps, index)
        logger.debug(f"Step {current.id} completed ({self.state.completion_percentage}%)")

        if index + 1 < len(steps):
            return self.next_step()

        self._notify()
        return NavigationResult(allowed=True, direction="same")

    def mark_step_error(self, message: str, index: Optional[int] = None) -> None:
        """
        Put a step into the ``error`` state.

        Args:
            message: Error shown next to the step
            index: Step index (default: current step)
        """
        index = self.state.current_step_index if index is None else index
        if not 0 <= index < len(self.state.steps):
            raise IndexError(f"Step index {index} out of range")

        steps = list(self.state.steps)
        steps[index] = steps[index].model_copy(update={"status": StepStatus.ERROR, "error_message": message})
        self._apply_steps(steps, self.state.current_step_index)
        self._notify()

    def clear_step_error(self, index: Optional[int] = None) -> None:
        """Clear a step's error, returning it to ``current`` or ``pending``."""
        index = self.state.current_step_index if index is None else index
        if not 0 <= index < len(self.state.steps):
            raise IndexError(f"Step index {index} out of range")

        step = self.state.steps[index]
        if step.status != StepStatus.ERROR:
            return

        status = StepStatus.CURRENT if index == self.state.current_step_index else StepStatus.PENDING
        steps = list(self.state.steps)
        steps[index] = step.model_copy(update={"status": status, "error_message": None})
        self._apply_steps(steps, self.state.current_step_index)
        self._notify()

    # ------------------------------------------------------------------
    # Form data and conditional steps
    # ------------------------------------------------------------------

    def update_form_data(self, data: Mapping[str, Any]) -> List[str]:
        """
        Merge data into the form and re-evaluate conditional steps.

        Surviving steps keep their statuses; the current step stays current.
        If the current step was removed, the first unfinished step at or after
        its position (or the last step) becomes current.

        Args:
            data: Fields to merge

        Returns:
            Step ids after re-evaluation
        """
        if self._disposed:
            logger.warning("update_form_data() called on a disposed controller")
            return self.state.step_ids()

        self.state.form_data.update(data)

        if self.configuration.conditional_rules and not self.phase.is_terminal:
            previous = {step.id: step for step in self.state.steps}
            current = self.state.current_step
            rebuilt = self._build_steps(self.state.form_data)

            merged: List[Step] = []
            for step in rebuilt:
                old = previous.get(step.id)
                if old is not None:
                    step = step.model_copy(update={"status": old.status, "error_message": old.error_message})
                merged.append(step)

            new_index = next(
                (position for position, step in enumerate(merged) if current is not None and step.id == current.id),
                None,
            )
            if new_index is None and merged:
                position = min(self.state.current_step_index, len(merged) - 1)
                new_index = next(
                    (i for i in range(position, len(merged)) if merged[i].status != StepStatus.COMPLETED),
                    len(merged) - 1,
                )
                merged[new_index] = merged[new_index].model_copy(
                    update={"status": StepStatus.CURRENT, "error_message": None}
                )
                self.state.current_step_entered_at = self.clock.now()

            if [step.id for step in merged] != self.state.step_ids():
                logger.info(f"Conditional steps re-evaluated: {[step.id for step in merged]}")
            self._apply_steps(merged, new_index or 0)

        self._notify()
        return self.state.step_ids()

    # ------------------------------------------------------------------
    # Provider hooks
    # ------------------------------------------------------------------

    def set_provider(self, provider: str) -> None:
        self.provider = provider
        self._refresh_analytics_context()
        self._notify()

    def set_variant(self, variant: str) -> None:
        self.variant = variant
        self._refresh_analytics_context()
        self._notify()

    def handle_provider_load(self, provider: str, load_time_ms: Optional[float] = None) -> None:
        """Record that the calendar provider finished loading."""
        self.provider = provider
        self._refresh_analytics_context()
        self.emitter.track_provider_load(provider, load_time_ms)
        self._notify()

    def handle_provider_error(self, provider: str, message: str) -> Optional[BookingError]:
        """
        Fail the session because the calendar provider could not load.

        Ignored once the session is terminal or while submitting.

        Returns:
            The recorded BookingError, or None if ignored
        """
        if self._disposed or self.phase.is_terminal or self.is_submitting:
            logger.debug(f"Ignoring provider error from {provider} in phase {self.phase}")
            return None

        self.emitter.track_provider_error(provider, BookingErrorCode.PROVIDER_LOAD_FAILED.value, message)
        error = BookingError(
            code=BookingErrorCode.PROVIDER_LOAD_FAILED.value,
            message=message,
            provider=provider,
            service=self.configuration.service,
            context=str(self.phase),
        )
        self._fail(error)
        return error

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    async def submit_booking(self, data: Optional[Mapping[str, Any]] = None) -> Optional[BookingResult]:
        """
        Submit the booking through the injected submitter.

        The phase is ``submitting`` for the duration of the call and the
        call is bounded by ``submission_timeout_seconds``. Failures are not
        retried.

        Args:
            data: Fields merged into the form data before submitting

        Returns:
            BookingResult on success; None on failure or when the session was
            restarted or disposed while the call was in flight

        Raises:
            StateTransitionError: If a submission is already running or the
                                  session is finished
            InvalidConfigError: If no submitter was configured
        """
        if self._disposed:
            raise StateTransitionError("Flow has been disposed", from_phase=str(self.phase))
        if self.is_submitting:
            raise StateTransitionError("Submission already in progress", from_phase=str(self.phase))
        if self.phase.is_terminal:
            raise StateTransitionError(
                "Booking flow has finished; restart to book again",
                from_phase=str(self.phase),
                to_phase=str(BookingSessionPhase.SUBMITTING),
            )
        if self.submitter is None:
            raise InvalidConfigError("No submission function configured")

        generation = self._generation
        if data:
            self.state.form_data.update(data)
        form_data = dict(self.state.form_data)

        self._set_phase(BookingSessionPhase.SUBMITTING)
        self.emitter.track_submit(fields_present=form_data.keys())

        try:
            raw = await asyncio.wait_for(
                self.submitter(form_data),
                timeout=self.settings.submission_timeout_seconds,
            )
            result = raw if isinstance(raw, BookingResult) else BookingResult.model_validate(raw)
        except Exception as e:
            if generation != self._generation:
                logger.info(f"Discarding failed submission of superseded session: {e}")
                return None

            fields = to_booking_error(
                e,
                phase=str(BookingSessionPhase.SUBMITTING),
                provider=self.provider,
                service=self.configuration.service,
            )
            if isinstance(e, ValidationError):
                fields["message"] = "Booking provider returned an invalid confirmation"
            log_error_with_context(e, {"session_id": self.state.session_id, "code": fields["code"]})
            self._fail(BookingError(**fields))
            return None

        if generation != self._generation:
            logger.info(f"Discarding booking {result.event_id} confirmed for a superseded session")
            return None

        self._succeed(result)
        return result

    def _succeed(self, result: BookingResult) -> None:
        self.result = result
        self.error = None

        index = self.state.current_step_index
        if self.state.steps and self.state.steps[index].status == StepStatus.CURRENT:
            steps = list(self.state.steps)
            steps[index] = steps[index].model_copy(update={"status": StepStatus.COMPLETED})
            self.state.steps = steps
            self.state.completion_percentage = completion_percentage(steps)

        self._set_phase(BookingSessionPhase.SUCCESS)
        self._discard_snapshot()

        self.emitter.track_success(
            provider=result.provider,
            event_id=result.event_id,
            scheduledAt=result.scheduled_at,
            timezone=result.timezone,
            totalTime=self.state.time_spent_seconds,
        )
        log_booking_event("CONFIRMED", self.state.session_id, result.event_id, {
            "provider": result.provider,
            "service": result.service,
            "scheduled_at": result.scheduled_at,
        })

        if self.on_success is not None:
            self.on_success(result)

    def _fail(self, error: BookingError) -> None:
        self.error = error
        current = self.state.current_step

        self._set_phase(BookingSessionPhase.ERROR)

        self.emitter.track_error(
            code=error.code,
            message=error.message,
            provider=error.provider,
            step=current.id if current else None,
            phase=error.context,
            timeSpent=self.state.time_spent_seconds,
        )
        log_booking_event("FAILED", self.state.session_id, None, {"code": error.code, "message": error.message})

        if self.on_error is not None:
            self.on_error(error)

    # ------------------------------------------------------------------
    # Abandonment
    # ------------------------------------------------------------------

    def record_activity(self, signal: str) -> bool:
        """Forward a user-activity signal (pointer, key, scroll, touch) to the tracker."""
        if self._disposed or self.tracker is None:
            return False
        return self.tracker.record_activity(signal)

    def handle_page_exit(self) -> Optional[AbandonmentReport]:
        """Report a page exit; only an analytics event is flushed."""
        if self._disposed or self.tracker is None:
            return None
        return self.tracker.handle_page_exit()

    def _build_abandonment_report(self, reason: str) -> AbandonmentReport:
        current = self.state.current_step
        return AbandonmentReport(
            reason=reason,
            session_id=self.state.session_id,
            phase=str(self.phase),
            step_id=current.id if current else None,
            step_index=self.state.current_step_index,
            elapsed_seconds=max(self.clock.now() - self.state.started_at, 0.0),
            completion_percentage=self.state.completion_percentage,
        )

    def _track_abandon(self, report: AbandonmentReport) -> None:
        self.emitter.track_abandon(
            reason=report.reason,
            step=report.step_id,
            time_spent=round(report.elapsed_seconds, 3),
            completion_percentage=report.completion_percentage,
            phase=report.phase,
        )
        log_flow_event("ABANDONED", report.session_id, report.phase, {
            "reason": report.reason,
            "step": report.step_id,
        })

    def _handle_abandonment_timeout(self, report: AbandonmentReport) -> None:
        self.abandonment = report
        self._stop_tick()
        self._discard_snapshot()
        self._track_abandon(report)

        if self.on_abandon is not None:
            self.on_abandon(report)
        self._notify()

    def _handle_page_exit_report(self, report: AbandonmentReport) -> None:
        self.abandonment = report
        self._track_abandon(report)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def to_snapshot(self) -> PersistedSnapshot:
        """Serialize the session's progress."""
        return PersistedSnapshot(
            archetype=str(self.configuration.archetype),
            service=self.configuration.service,
            steps=list(self.state.steps),
            current_step_index=self.state.current_step_index,
            started_at=epoch_millis(self.state.started_at),
        )

    def save_progress(self) -> Optional[PersistedSnapshot]:
        """Write the snapshot now, cancelling any pending auto-save."""
        if self._autosave_handle is not None:
            self._autosave_handle.cancel()
            self._autosave_handle = None
        if self.store is None or self._disposed or self.phase.is_terminal:
            return None
        return self.store.save(self.to_snapshot())

    def _schedule_autosave(self) -> None:
        if self.store is None or self._disposed:
            return
        if self._autosave_handle is not None:
            self._autosave_handle.cancel()
        self._autosave_handle = self.clock.call_later(self.settings.autosave_debounce_seconds, self._autosave)

    def _autosave(self) -> None:
        self._autosave_handle = None
        self.save_progress()

    def _discard_snapshot(self) -> None:
        if self._autosave_handle is not None:
            self._autosave_handle.cancel()
            self._autosave_handle = None
        if self.store is not None:
            self.store.clear()

    def resume(self, snapshot: PersistedSnapshot) -> bool:
        """
        Restore steps and current index from a snapshot.

        Refused for another archetype, an out-of-range index, or while the
        session is submitting or finished.

        Returns:
            True if the snapshot was applied
        """
        if self._navigation_refusal():
            return False
        if snapshot.archetype != str(self.configuration.archetype):
            logger.info(
                f"Ignoring snapshot for archetype {snapshot.archetype}, "
                f"session uses {self.configuration.archetype}"
            )
            return False
        if not snapshot.steps or snapshot.current_step_index >= len(snapshot.steps):
            logger.warning(f"Ignoring snapshot with invalid step index {snapshot.current_step_index}")
            return False

        self.state.steps = [step.model_copy() for step in snapshot.steps]
        self.state.current_step_index = snapshot.current_step_index
        self.state.completion_percentage = completion_percentage(self.state.steps)
        self.state.started_at = snapshot.started_at / 1000
        self.state.current_step_entered_at = self.clock.now()
        self.state.navigation_history.append(snapshot.current_step_index)

        logger.info(
            f"Resumed session {self.state.session_id} at step {snapshot.current_step_index} "
            f"({self.state.completion_percentage}% complete)"
        )
        self.emitter.track_form_step(
            step=snapshot.current_step_index,
            step_name=self.state.steps[snapshot.current_step_index].id,
            direction="forward",
            action="resume",
        )
        self._notify()
        return True

    def restore(self) -> bool:
        """Load the saved snapshot from the store and resume from it."""
        if self.store is None:
            return False
        snapshot = self.store.load()
        if snapshot is None:
            return False
        return self.resume(snapshot)

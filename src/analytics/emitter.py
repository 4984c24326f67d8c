"""
Context-enriched analytics dispatch.

Exactly one dispatcher may be registered per emitter. Each controller owns
its own emitter, so registrations are torn down with the controller and never
leak across sessions. Analytics must never interrupt the booking flow:
a missing dispatcher or a failing one is logged and ignored.
"""
import time
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, Optional

from loguru import logger

from .events import DOMAIN, BookingEvent

if TYPE_CHECKING:
    from flow.clock import Clock


Dispatcher = Callable[[str, Dict[str, Any]], None]


def _drop_none(values: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}


class AnalyticsEmitter:
    """
    Enriches event payloads and forwards them to a single dispatcher.

    Args:
        session_id: Session id attached to every payload
        clock: Time source for timestamps; defaults to ``time.time``
        dispatcher: Optional dispatcher registered immediately
    """

    def __init__(
        self,
        session_id: Optional[str] = None,
        clock: Optional["Clock"] = None,
        dispatcher: Optional[Dispatcher] = None,
    ):
        self.session_id = session_id
        self.clock = clock
        self.base_context: Dict[str, Any] = {}
        self._dispatcher: Optional[Dispatcher] = dispatcher

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def set_dispatcher(self, dispatcher: Dispatcher) -> None:
        """Register the dispatcher, replacing any previous one."""
        if self._dispatcher is not None and self._dispatcher is not dispatcher:
            logger.debug("Replacing analytics dispatcher")
        self._dispatcher = dispatcher

    def clear_dispatcher(self) -> None:
        self._dispatcher = None

    @property
    def has_dispatcher(self) -> bool:
        return self._dispatcher is not None

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def _timestamp(self) -> str:
        seconds = self.clock.now() if self.clock is not None else time.time()
        moment = datetime.fromtimestamp(seconds, tz=timezone.utc)
        return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")

    def emit(
        self,
        event: str,
        payload: Optional[Dict[str, Any]] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Enrich and dispatch an event.

        Merge order (later wins): base context, ``context``, ``payload``,
        then ``timestamp``, ``sessionId`` and ``domain``.

        Args:
            event: Event name
            payload: Event-specific fields
            context: Reusable base payload from ``create_context``

        Returns:
            True if the dispatcher accepted the event
        """
        if self._dispatcher is None:
            return False

        name = event.value if isinstance(event, BookingEvent) else str(event)
        try:
            enriched = {
                **self.base_context,
                **(context or {}),
                **(payload or {}),
                "timestamp": self._timestamp(),
                "sessionId": self.session_id,
                "domain": DOMAIN,
            }
            self._dispatcher(name, enriched)
            return True
        except Exception as e:
            logger.warning(f"Analytics dispatch failed for {name}: {e}")
            return False

    def create_context(
        self,
        service: Optional[str] = None,
        variant: Optional[str] = None,
        source: Optional[str] = None,
        viewport: Optional[Any] = None,
        referrer: Optional[str] = None,
        **extra: Any,
    ) -> Dict[str, Any]:
        """
        Build a reusable base payload for subsequent events.

        Unset fields are omitted.

        Returns:
            Dictionary to pass as ``context`` to ``emit`` or any ``track_*`` helper
        """
        return _drop_none({
            "service": service,
            "variant": variant,
            "source": source,
            "viewport": viewport,
            "referrer": referrer,
            **extra,
        })

    # ------------------------------------------------------------------
    # Funnel helpers
    # ------------------------------------------------------------------

    def track_view(self, context: Optional[Dict[str, Any]] = None, **fields: Any) -> bool:
        return self.emit(BookingEvent.VIEW, _drop_none(fields), context)

    def track_modal_open(self, context: Optional[Dict[str, Any]] = None, **fields: Any) -> bool:
        return self.emit(BookingEvent.MODAL_OPEN, _drop_none(fields), context)

    def track_modal_close(
        self,
        reason: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> bool:
        return self.emit(BookingEvent.MODAL_CLOSE, {"reason": reason or "unknown"}, context)

    def track_form_step(
        self,
        step: int,
        step_name: Optional[str] = None,
        direction: str = "forward",
        context: Optional[Dict[str, Any]] = None,
        **fields: Any,
    ) -> bool:
        """Emit a step transition with ``step``, ``stepName`` and ``direction``."""
        payload = {
            "step": step,
            "stepName": step_name or f"step_{step}",
            "direction": direction,
            **_drop_none(fields),
        }
        return self.emit(BookingEvent.FORM_STEP, payload, context)

    def track_phase_change(
        self,
        from_phase: str,
        to_phase: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> bool:
        return self.emit(BookingEvent.PHASE_CHANGE, {"fromPhase": str(from_phase), "toPhase": str(to_phase)}, context)

    def track_provider_load(
        self,
        provider: str,
        load_time_ms: Optional[float] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> bool:
        return self.emit(
            BookingEvent.PROVIDER_LOAD,
            _drop_none({"provider": provider, "loadTimeMs": load_time_ms}),
            context,
        )

    def track_provider_error(
        self,
        provider: str,
        code: str,
        message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> bool:
        return self.emit(
            BookingEvent.PROVIDER_ERROR,
            _drop_none({"provider": provider, "code": code, "message": message}),
            context,
        )

    def track_submit(
        self,
        fields_present: Iterable[str] = (),
        context: Optional[Dict[str, Any]] = None,
    ) -> bool:
        fields_present = sorted(fields_present)
        return self.emit(
            BookingEvent.SUBMIT,
            {"fieldsPresent": fields_present, "fieldsCount": len(fields_present)},
            context,
        )

    def track_success(
        self,
        provider: Optional[str] = None,
        event_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        **fields: Any,
    ) -> bool:
        payload = _drop_none({"provider": provider, "eventId": event_id, **fields})
        payload["conversion"] = True
        return self.emit(BookingEvent.SUCCESS, payload, context)

    def track_error(
        self,
        code: str,
        message: str,
        provider: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        **fields: Any,
    ) -> bool:
        """Emit a failure with ``code``, ``message`` and ``provider``."""
        payload = {"code": code, "message": message, "provider": provider, **_drop_none(fields)}
        return self.emit(BookingEvent.ERROR, payload, context)

    def track_abandon(
        self,
        reason: str,
        step: Optional[str] = None,
        time_spent: float = 0,
        completion_percentage: int = 0,
        context: Optional[Dict[str, Any]] = None,
        **fields: Any,
    ) -> bool:
        payload = {
            "reason": reason,
            "step": step or "unknown",
            "timeSpent": time_spent,
            "completionPercentage": completion_percentage,
            **_drop_none(fields),
        }
        return self.emit(BookingEvent.ABANDON, payload, context)

    def track_mode_decision(
        self,
        analytics: Dict[str, Any],
        context: Optional[Dict[str, Any]] = None,
    ) -> bool:
        return self.emit(BookingEvent.MODE_DECISION, dict(analytics), context)

"""
Main entry point for the booking flow engine.

Runs a scripted booking session end to end: decides the presentation mode,
walks the ``simple`` flow, submits through a stand-in provider and logs every
analytics event.
"""
import asyncio
import sys
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

from loguru import logger

from config import get_settings
from error_handling import init_logging, BookingSystemError, LogContext
from flow import AsyncioClock, FlowController, resolve_flow_configuration, format_duration
from models.schemas import BookingResult
from persistence import PersistenceStore, SqlKeyValueStore
from presentation import ModeDecisionEngine, StaticEnvironmentProbe


def log_dispatcher(event: str, payload: Dict[str, Any]) -> None:
    """Analytics dispatcher that writes events to the log."""
    logger.bind(category="ANALYTICS").info(f"{event} {payload}")


async def demo_submitter(form_data: Dict[str, Any]) -> BookingResult:
    """Stand-in for a calendar provider call."""
    await asyncio.sleep(0.2)
    scheduled = datetime.now(timezone.utc) + timedelta(days=2)
    return BookingResult(
        provider="calcom",
        service=form_data.get("service", "web-development-services"),
        event_id=f"event_{uuid.uuid4().hex[:12]}",
        scheduled_at=scheduled.isoformat(),
        timezone="UTC",
        attendee_email=form_data.get("email"),
    )


async def run_demo() -> bool:
    """
    Run one scripted booking session.

    Returns:
        True if the booking succeeded
    """
    settings = get_settings()

    engine = ModeDecisionEngine(default_breakpoint=settings.mode_breakpoint_px)
    decision = engine.resolve(StaticEnvironmentProbe(
        pathname="/services/web-development-services/websites",
        viewport_width=1280,
    ))
    logger.info(f"Presentation mode: {decision.mode} ({decision.reason})")

    clock = AsyncioClock()
    store = PersistenceStore(SqlKeyValueStore(settings.storage_url), clock=clock)
    controller = FlowController(
        resolve_flow_configuration(
            "simple",
            service="web-development-services",
            strict=settings.strict_archetypes,
        ),
        submitter=demo_submitter,
        clock=clock,
        store=store,
        dispatcher=log_dispatcher,
        settings=settings,
        variant=str(decision.mode),
        source="demo",
        on_success=lambda result: logger.info(f"Booked {result.event_id} for {result.scheduled_at}"),
        on_error=lambda error: logger.error(f"Booking failed: {error.code} {error.message}"),
    )
    controller.emitter.track_mode_decision(decision.analytics)

    if controller.restore():
        logger.info(f"Resumed saved progress at step {controller.current_step_index}")

    try:
        with LogContext(session_id=controller.session_id):
            controller.advance_phase()
            controller.update_form_data({"service": "web-development-services"})
            controller.complete_current_step()

            controller.advance_phase()
            controller.advance_phase()
            controller.update_form_data({"slot": "2030-01-15T10:00:00Z"})
            controller.complete_current_step()

            controller.update_form_data({"name": "Ada Lovelace", "email": "ada@example.com"})
            controller.complete_current_step()

            controller.advance_phase()
            logger.info(
                f"Ready to confirm: {controller.completion_percentage}% complete, "
                f"about {format_duration(controller.time_remaining)} left"
            )

            result = await controller.submit_booking()
            return result is not None
    except BookingSystemError as e:
        logger.error(f"Demo session stopped: {e.user_message}")
        return False
    finally:
        logger.info(f"Session summary: {controller.get_summary()}")
        controller.dispose()


def main():
    """
    Main entry point for the demo application.
    """
    settings = get_settings()
    init_logging(settings.environment, settings.log_level)

    logger.info("=" * 80)
    logger.info("Booking Flow Engine Demo")
    logger.info("=" * 80)

    try:
        success = asyncio.run(run_demo())
    except KeyboardInterrupt:
        logger.info("Demo interrupted by user")
        return 130

    if success:
        logger.info("Booking completed successfully")
        return 0

    logger.info("Session ended without completing booking")
    return 1


if __name__ == "__main__":
    sys.exit(main())

"""
Pytest configuration and shared fixtures.
"""
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest

# Add src directory to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from config import Settings
from flow import FlowController, resolve_flow_configuration
from models.schemas import BookingResult
from persistence import InMemoryKeyValueStore, PersistenceStore


START_TIME = 1_700_000_000.0


class ManualTimer:
    """Handle returned by ManualClock.call_later."""

    def __init__(self, due: float, callback: Callable[[], None], sequence: int):
        self.due = due
        self.callback = callback
        self.sequence = sequence
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualClock:
    """
    Clock driven by the test.

    ``advance`` fires due timers in order, including timers scheduled by
    callbacks that fire during the same advance.
    """

    def __init__(self, start: float = START_TIME):
        self._now = start
        self._timers: List[ManualTimer] = []
        self._sequence = 0

    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualTimer:
        self._sequence += 1
        timer = ManualTimer(self._now + max(delay, 0), callback, self._sequence)
        self._timers.append(timer)
        return timer

    def advance(self, seconds: float) -> None:
        target = self._now + seconds
        while True:
            due = [t for t in self._timers if not t.cancelled and t.due <= target]
            if not due:
                break
            timer = min(due, key=lambda t: (t.due, t.sequence))
            self._timers.remove(timer)
            timer.cancelled = True
            self._now = max(self._now, timer.due)
            timer.callback()
        self._now = target

    def jump(self, seconds: float) -> None:
        """Move time forward without firing timers."""
        self._now += seconds

    @property
    def pending(self) -> int:
        return sum(1 for timer in self._timers if not timer.cancelled)


class RecordingDispatcher:
    """Analytics dispatcher that keeps every event."""

    def __init__(self):
        self.events: List[Tuple[str, Dict[str, Any]]] = []

    def __call__(self, event: str, payload: Dict[str, Any]) -> None:
        self.events.append((event, payload))

    def names(self) -> List[str]:
        return [name for name, _ in self.events]

    def of(self, event: str) -> List[Dict[str, Any]]:
        return [payload for name, payload in self.events if name == event]

    def last(self, event: str) -> Optional[Dict[str, Any]]:
        payloads = self.of(event)
        return payloads[-1] if payloads else None


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def settings() -> Settings:
    """Settings with short, deterministic timers."""
    return Settings(
        BOOKING_ENVIRONMENT="test",
        BOOKING_IDLE_TIMEOUT_SECONDS=300.0,
        BOOKING_TICK_INTERVAL_SECONDS=1.0,
        BOOKING_AUTOSAVE_DEBOUNCE_SECONDS=1.0,
        BOOKING_SUBMISSION_TIMEOUT_SECONDS=0.5,
        BOOKING_TRACK_ABANDONMENT=True,
        BOOKING_STORAGE_URL="sqlite:///:memory:",
        BOOKING_STORAGE_KEY="booking_progress_state",
        BOOKING_SNAPSHOT_MAX_AGE_SECONDS=86400.0,
        BOOKING_SNAPSHOT_SCHEMA_VERSION="1.0.0",
    )


@pytest.fixture
def memory_store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def progress_store(memory_store, clock) -> PersistenceStore:
    return PersistenceStore(
        memory_store,
        clock=clock,
        key="booking_progress_state",
        schema_version="1.0.0",
        max_age_seconds=86400.0,
    )


@pytest.fixture
def booking_result() -> BookingResult:
    return BookingResult(
        provider="calcom",
        service="web-development-services",
        event_id="event_123",
        scheduled_at="2030-01-15T10:00:00Z",
        timezone="UTC",
        attendee_email="ada@example.com",
    )


@pytest.fixture
def make_controller(clock, dispatcher, settings, progress_store):
    """
    Factory for controllers wired to the manual clock and recording dispatcher.

    Keyword arguments override the defaults; pass ``store=None`` to disable
    persistence.
    """
    created: List[FlowController] = []

    def factory(archetype: str = "simple", **kwargs) -> FlowController:
        configuration = kwargs.pop("configuration", None) or resolve_flow_configuration(archetype)
        options = {
            "clock": clock,
            "dispatcher": dispatcher,
            "settings": settings,
            "store": progress_store,
        }
        options.update(kwargs)
        controller = FlowController(configuration, **options)
        created.append(controller)
        return controller

    yield factory

    for controller in created:
        controller.dispose()

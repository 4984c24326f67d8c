"""
Time source and timer scheduling used by the flow controller.

The controller never reads the wall clock or the event loop directly; it is
handed a ``Clock`` so tests can drive time by hand.
"""
import asyncio
import time
from typing import Callable, Optional, Protocol


class TimerHandle(Protocol):
    """A scheduled callback that can be cancelled."""

    def cancel(self) -> None:
        ...


class Clock(Protocol):
    """Time source and one-shot timer scheduler."""

    def now(self) -> float:
        """Current time in epoch seconds."""
        ...

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """Run ``callback`` once after ``delay`` seconds."""
        ...


class AsyncioClock:
    """
    Clock backed by ``time.time`` and the asyncio event loop.

    Args:
        loop: Event loop used for timers; defaults to the running loop at
              scheduling time
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    def now(self) -> float:
        return time.time()

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        """
        Schedule on the configured loop.

        Raises:
            RuntimeError: If no loop was given and none is running
        """
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(max(delay, 0), callback)


def epoch_millis(seconds: float) -> int:
    """Convert epoch seconds to integer epoch milliseconds."""
    return int(round(seconds * 1000))

"""
Completion and time-remaining calculations for a step list.
"""
import math
from typing import Sequence

from models.schemas import DEFAULT_STEP_SECONDS, Step, StepStatus


def completion_percentage(steps: Sequence[Step]) -> int:
    """
    Percentage of completed steps, rounded half up.

    Args:
        steps: Steps of the flow

    Returns:
        Integer in [0, 100]; 0 for an empty list
    """
    if not steps:
        return 0

    completed = sum(1 for step in steps if step.status == StepStatus.COMPLETED)
    return int(math.floor(100 * completed / len(steps) + 0.5))


def time_remaining(steps: Sequence[Step], from_index: int) -> float:
    """
    Sum of estimated seconds for ``steps[from_index:]``.

    Steps without an estimate count as 60 seconds.
    """
    return sum(
        step.estimated_time_seconds if step.estimated_time_seconds is not None else DEFAULT_STEP_SECONDS
        for step in steps[max(from_index, 0):]
    )


def format_duration(seconds: float) -> str:
    """
    Format a duration for display: "45s", "2m 30s", "5m", "1h 5m".

    Args:
        seconds: Duration in seconds (fractions are truncated)

    Returns:
        Human readable duration
    """
    seconds = max(int(seconds), 0)
    if seconds < 60:
        return f"{seconds}s"

    minutes, remaining_seconds = divmod(seconds, 60)
    if minutes < 60:
        return f"{minutes}m {remaining_seconds}s" if remaining_seconds else f"{minutes}m"

    hours, remaining_minutes = divmod(minutes, 60)
    return f"{hours}h {remaining_minutes}m"

"""
Flow package for orchestrating a booking session.

This package provides:
- BookingSessionPhase: Enum for the coarse session lifecycle
- resolve_flow_configuration: Built-in step configurations per archetype
- apply_conditional_rules: Data-driven step insertion and removal
- NavigationGuard: Step transition rules
- AbandonmentTracker: Idle and page-exit detection
- FlowState: Pydantic model holding one session's progress
- FlowController: Main class composing all of the above
"""

from .phases import BookingSessionPhase
from .configurations import (
    resolve_flow_configuration,
    validate_flow_configuration,
    create_step,
    create_flow,
)
from .conditional import apply_conditional_rules, evaluate_condition
from .completion import completion_percentage, time_remaining, format_duration
from .navigation import NavigationGuard, update_step_status, validate_step_completion
from .abandonment import AbandonmentTracker, ACTIVITY_SIGNALS
from .clock import Clock, AsyncioClock
from .state import FlowState, generate_session_id
from .controller import FlowController

__all__ = [
    "BookingSessionPhase",
    "resolve_flow_configuration",
    "validate_flow_configuration",
    "create_step",
    "create_flow",
    "apply_conditional_rules",
    "evaluate_condition",
    "completion_percentage",
    "time_remaining",
    "format_duration",
    "NavigationGuard",
    "update_step_status",
    "validate_step_completion",
    "AbandonmentTracker",
    "ACTIVITY_SIGNALS",
    "Clock",
    "AsyncioClock",
    "FlowState",
    "generate_session_id",
    "FlowController",
]

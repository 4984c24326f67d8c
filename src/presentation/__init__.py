"""
Presentation package - modal vs full-page decision and environment signals.
"""
from .environment import (
    EnvironmentProbe,
    StaticEnvironmentProbe,
    detect_booking_context,
    in_services_hierarchy,
    is_leaf_service,
)
from .mode import ModeDecisionEngine

__all__ = [
    "EnvironmentProbe",
    "StaticEnvironmentProbe",
    "detect_booking_context",
    "in_services_hierarchy",
    "is_leaf_service",
    "ModeDecisionEngine",
]

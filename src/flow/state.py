"""
Flow state model for a single booking session.

This module defines the FlowState Pydantic model that holds the progress of
one booking interaction. It is owned by exactly one FlowController and is
only mutated through the controller's methods.
"""

import uuid
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from models.schemas import Step, StepStatus


def generate_session_id() -> str:
    """Create a new opaque session identifier."""
    return f"booking_{uuid.uuid4().hex[:16]}"


class FlowState(BaseModel):
    """
    Progress of one booking session.

    Attributes:
        session_id: Identifier attached to every analytics event
        steps: Ordered steps with their statuses
        current_step_index: Index of the step the user is on
        completion_percentage: Derived from step statuses (0-100)
        started_at: Session start, epoch seconds
        current_step_entered_at: When the current step was entered, epoch seconds
        navigation_history: Visited step indices in order
        form_data: Data collected so far
        time_spent_seconds: Elapsed-time counter advanced by the controller tick
    """

    session_id: str = Field(default_factory=generate_session_id)
    steps: List[Step] = Field(default_factory=list)
    current_step_index: int = Field(default=0, ge=0)
    completion_percentage: int = Field(default=0, ge=0, le=100)
    started_at: float = Field(default=0.0)
    current_step_entered_at: float = Field(default=0.0)
    navigation_history: List[int] = Field(default_factory=list)
    form_data: Dict[str, Any] = Field(default_factory=dict)
    time_spent_seconds: int = Field(default=0, ge=0)

    @field_validator("session_id")
    @classmethod
    def validate_session_id(cls, v: str) -> str:
        """
        Validate that the session id is not blank.

        Raises:
            ValueError: If the id is empty or whitespace
        """
        if not v or not v.strip():
            raise ValueError("Session id cannot be empty")
        return v.strip()

    @model_validator(mode="after")
    def validate_index_in_range(self) -> "FlowState":
        if self.steps and self.current_step_index >= len(self.steps):
            raise ValueError(
                f"current_step_index {self.current_step_index} out of range for {len(self.steps)} steps"
            )
        return self

    @property
    def current_step(self) -> Optional[Step]:
        if 0 <= self.current_step_index < len(self.steps):
            return self.steps[self.current_step_index]
        return None

    def step_ids(self) -> List[str]:
        return [step.id for step in self.steps]

    def index_of(self, step_id: str) -> Optional[int]:
        """Return the index of ``step_id`` or None."""
        for index, step in enumerate(self.steps):
            if step.id == step_id:
                return index
        return None

    def current_count(self) -> int:
        return sum(1 for step in self.steps if step.status == StepStatus.CURRENT)

    def get_summary(self) -> Dict[str, Any]:
        """
        Get a summary of session progress for logging.

        Returns:
            Dictionary with session id, current step, completion and history
        """
        current = self.current_step
        return {
            "session_id": self.session_id,
            "current_step": current.id if current else None,
            "current_step_index": self.current_step_index,
            "completion_percentage": self.completion_percentage,
            "visited": list(self.navigation_history),
            "form_fields": sorted(self.form_data.keys()),
        }

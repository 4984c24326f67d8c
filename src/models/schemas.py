"""
Pydantic models for booking flow data validation and serialization.

Field names are snake_case in Python; every model serializes with camelCase
aliases (``model_dump(by_alias=True)``) so snapshots and analytics payloads
match the JSON contract consumed by the host application.
"""
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


DEFAULT_STEP_SECONDS = 60.0


class StepStatus(str, Enum):
    """Status of a single step in the fine-grained sequence."""

    PENDING = "pending"
    CURRENT = "current"
    COMPLETED = "completed"
    ERROR = "error"
    SKIPPED = "skipped"

    def __str__(self) -> str:
        return self.value


class FlowArchetype(str, Enum):
    """Named templates of step sequences."""

    SIMPLE = "simple"
    DETAILED = "detailed"
    CONSULTATION = "consultation"
    QUOTE = "quote"
    CUSTOM = "custom"

    def __str__(self) -> str:
        return self.value


class ConditionOperator(str, Enum):
    """Comparison operators available to conditional rules."""

    EQUALS = "equals"
    NOT_EQUALS = "not-equals"
    CONTAINS = "contains"
    GREATER_THAN = "greater-than"
    LESS_THAN = "less-than"
    EXISTS = "exists"


class BookingMode(str, Enum):
    """Presentation of the booking flow."""

    MODAL = "modal"
    PAGE = "page"

    def __str__(self) -> str:
        return self.value


class CamelModel(BaseModel):
    """Base model accepting both snake_case names and camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================================================
# Steps and flow configuration
# ============================================================================

class StepDefinition(CamelModel):
    """
    A step as declared by a flow configuration or conditional rule.

    Status is owned by the running flow, so definitions carry none.
    """

    id: str = Field(..., min_length=1, description="Unique step id within a flow")
    label: str = Field(..., description="Display label")
    description: Optional[str] = Field(default=None, description="Longer description")
    optional: bool = Field(default=False, description="Whether the step may be skipped")
    estimated_time_seconds: Optional[float] = Field(
        default=DEFAULT_STEP_SECONDS,
        ge=0,
        description="Estimated time to complete the step"
    )
    clickable: bool = Field(default=True, description="Whether the user may navigate to it")

    def to_step(self, status: "StepStatus" = StepStatus.PENDING) -> "Step":
        """Create a runtime step from this definition."""
        return Step(**self.model_dump(include=set(StepDefinition.model_fields)), status=status)


class Step(StepDefinition):
    """A step inside a running flow."""

    status: StepStatus = Field(default=StepStatus.PENDING)
    error_message: Optional[str] = Field(default=None)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "time-selection",
                "label": "Choose Time",
                "status": "current",
                "optional": False,
                "estimatedTimeSeconds": 90,
                "clickable": True,
            }
        }
    )


class StepCondition(CamelModel):
    """Condition evaluated against the flow's form data."""

    field: str = Field(..., min_length=1)
    operator: ConditionOperator
    value: Any = None


class ConditionalRule(CamelModel):
    """Data-driven instruction to insert, replace or remove a step."""

    target_step_id: str = Field(..., min_length=1)
    condition: StepCondition
    step_definition: StepDefinition
    insert_after_id: Optional[str] = None

    @model_validator(mode="after")
    def validate_target_matches_definition(self) -> "ConditionalRule":
        """The inserted step must carry the id the rule targets."""
        if self.step_definition.id != self.target_step_id:
            raise ValueError(
                f"Rule targets '{self.target_step_id}' but defines step "
                f"'{self.step_definition.id}'"
            )
        return self


def configuration_errors(
    steps: List[StepDefinition],
    required_step_ids: Set[str],
    optional_step_ids: Set[str],
) -> List[str]:
    """
    Collect invariant violations of a flow configuration.

    Args:
        steps: Ordered step definitions
        required_step_ids: Ids that may not be skipped
        optional_step_ids: Ids that may be skipped

    Returns:
        List of human-readable errors, empty when the configuration is valid
    """
    errors = []
    if not steps:
        errors.append("Flow must have at least one step")

    ids = [step.id for step in steps]
    seen = set()
    duplicates = []
    for step_id in ids:
        if step_id in seen and step_id not in duplicates:
            duplicates.append(step_id)
        seen.add(step_id)
    if duplicates:
        errors.append(f"Duplicate step IDs found: {', '.join(duplicates)}")

    for step_id in sorted(required_step_ids):
        if step_id not in seen:
            errors.append(f'Required step "{step_id}" not found in steps')
    for step_id in sorted(optional_step_ids):
        if step_id not in seen:
            errors.append(f'Optional step "{step_id}" not found in steps')

    overlap = required_step_ids & optional_step_ids
    if overlap:
        errors.append(f"Steps cannot be both required and optional: {', '.join(sorted(overlap))}")

    return errors


class FlowConfiguration(CamelModel):
    """Ordered step list and requirements for one flow archetype."""

    archetype: FlowArchetype
    service: Optional[str] = None
    steps: List[StepDefinition]
    estimated_total_time_seconds: float = Field(..., ge=0)
    required_step_ids: Set[str] = Field(default_factory=set)
    optional_step_ids: Set[str] = Field(default_factory=set)
    conditional_rules: List[ConditionalRule] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_step_sets(self) -> "FlowConfiguration":
        errors = configuration_errors(self.steps, self.required_step_ids, self.optional_step_ids)
        if errors:
            raise ValueError("; ".join(errors))
        return self

    def step_ids(self) -> List[str]:
        return [step.id for step in self.steps]


# ============================================================================
# Navigation, abandonment and presentation results
# ============================================================================

class NavigationResult(CamelModel):
    """Outcome of a proposed step transition."""

    allowed: bool
    reason: Optional[str] = None
    skipped_optional_indices: List[int] = Field(default_factory=list)
    direction: Optional[str] = None


class AbandonmentReport(CamelModel):
    """Snapshot of a session at the moment it was considered abandoned."""

    reason: str
    session_id: str
    phase: str
    step_id: Optional[str] = None
    step_index: int = 0
    elapsed_seconds: float = 0.0
    completion_percentage: int = 0


class BookingModeOptions(CamelModel):
    """Contextual signals for the modal vs page decision."""

    in_services_hierarchy: bool = False
    is_leaf_service: bool = False
    has_multiple_meeting_types: bool = False
    prefers_reduced_motion: bool = False
    a11y_mode: bool = False
    viewport_width: int = Field(default=1024, ge=0)
    breakpoint: Optional[int] = Field(default=None, gt=0)
    force_mode: Optional[BookingMode] = None


class BookingPageContext(CamelModel):
    """Location of the booking trigger inside the services hierarchy."""

    pathname: str = "/"
    level: Optional[str] = None
    hub_slug: Optional[str] = None
    service_slug: Optional[str] = None
    sub_slug: Optional[str] = None
    source: Optional[str] = None


class ModeDecision(CamelModel):
    """Chosen presentation mode and why."""

    mode: BookingMode
    reason: str
    analytics: Dict[str, Any] = Field(default_factory=dict)


# ============================================================================
# Submission boundary and persistence
# ============================================================================

class BookingResult(CamelModel):
    """Confirmation returned by the injected submission function."""

    provider: str
    service: str
    event_id: str
    scheduled_at: str
    timezone: str
    attendee_email: Optional[str] = None


class BookingError(CamelModel):
    """Failure recorded when a submission or provider load fails."""

    code: str
    message: str
    provider: Optional[str] = None
    service: Optional[str] = None
    context: str


class PersistedSnapshot(CamelModel):
    """Serialized progress of a flow, written to client storage."""

    archetype: str
    service: Optional[str] = None
    steps: List[Step]
    current_step_index: int = Field(..., ge=0)
    started_at: int = Field(..., description="Epoch milliseconds")
    saved_at: int = Field(default=0, description="Epoch milliseconds")
    schema_version: str = ""

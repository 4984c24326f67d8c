"""
Models package - SQLAlchemy storage table and Pydantic schemas.
"""
from .database import (
    Base,
    KeyValueEntry,
    init_db,
    create_tables,
    get_db_session,
)

from .schemas import (
    DEFAULT_STEP_SECONDS,
    StepStatus,
    FlowArchetype,
    ConditionOperator,
    BookingMode,
    StepDefinition,
    Step,
    StepCondition,
    ConditionalRule,
    FlowConfiguration,
    configuration_errors,
    NavigationResult,
    AbandonmentReport,
    BookingModeOptions,
    BookingPageContext,
    ModeDecision,
    BookingResult,
    BookingError,
    PersistedSnapshot,
)

__all__ = [
    # Database models
    "Base",
    "KeyValueEntry",
    # Database utilities
    "init_db",
    "create_tables",
    "get_db_session",
    # Pydantic schemas
    "DEFAULT_STEP_SECONDS",
    "StepStatus",
    "FlowArchetype",
    "ConditionOperator",
    "BookingMode",
    "StepDefinition",
    "Step",
    "StepCondition",
    "ConditionalRule",
    "FlowConfiguration",
    "configuration_errors",
    "NavigationResult",
    "AbandonmentReport",
    "BookingModeOptions",
    "BookingPageContext",
    "ModeDecision",
    "BookingResult",
    "BookingError",
    "PersistedSnapshot",
]

"""
Built-in flow configurations and configuration helpers.

Maps a flow archetype (and optional service) to an ordered step list with
required/optional partitioning and an estimated total duration.
"""
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from loguru import logger
from pydantic import ValidationError

from error_handling.exceptions import InvalidConfigError
from models.schemas import (
    DEFAULT_STEP_SECONDS,
    FlowArchetype,
    FlowConfiguration,
    StepDefinition,
    configuration_errors,
)


def _step(
    step_id: str,
    label: str,
    description: str,
    seconds: float,
    optional: bool = False,
    clickable: bool = True,
) -> StepDefinition:
    return StepDefinition(
        id=step_id,
        label=label,
        description=description,
        estimated_time_seconds=seconds,
        optional=optional,
        clickable=clickable,
    )


_SERVICE_SELECTION = ("service-selection", "Select Service")
_CONTACT_INFO = ("contact-info", "Contact Details", "Provide your contact information")


_BUILT_IN_FLOWS: Dict[FlowArchetype, Tuple[List[StepDefinition], float]] = {
    FlowArchetype.SIMPLE: (
        [
            _step(*_SERVICE_SELECTION, "Choose the service you need", 60),
            _step("time-selection", "Choose Time", "Pick your preferred time slot", 90),
            _step(*_CONTACT_INFO, 120),
            _step("confirmation", "Confirmation", "Review and confirm your booking", 30, clickable=False),
        ],
        300,
    ),
    FlowArchetype.DETAILED: (
        [
            _step(*_SERVICE_SELECTION, "Choose the service you need", 60),
            _step("requirements", "Requirements", "Tell us about your project needs", 180),
            _step("time-selection", "Choose Time", "Pick your preferred time slot", 90),
            _step(*_CONTACT_INFO, 120),
            _step("payment", "Payment", "Complete payment for your booking", 90, optional=True),
            _step("confirmation", "Confirmation", "Review and confirm your booking", 30, clickable=False),
        ],
        570,
    ),
    FlowArchetype.CONSULTATION: (
        [
            _step(*_SERVICE_SELECTION, "Choose consultation type", 60),
            _step("questionnaire", "Questionnaire", "Answer a few questions about your needs", 240),
            _step("time-selection", "Schedule Meeting", "Choose your consultation time", 90),
            _step(*_CONTACT_INFO, 90),
            _step("confirmation", "Confirmation", "Confirm your consultation", 30, clickable=False),
        ],
        510,
    ),
    FlowArchetype.QUOTE: (
        [
            _step(*_SERVICE_SELECTION, "Choose the service you need quoted", 60),
            _step("project-details", "Project Details", "Provide detailed project information", 300),
            _step("contact-info", "Contact Details", "How can we reach you with the quote?", 90),
            _step("quote-generation", "Generate Quote", "We're preparing your custom quote", 60, clickable=False),
        ],
        510,
    ),
}

_GENERIC_FLOW: Tuple[List[StepDefinition], float] = (
    [
        _step("step-1", "Step 1", "Complete the first step", 60),
        _step("step-2", "Step 2", "Complete the second step", 90),
        _step("confirmation", "Confirmation", "Confirm your selections", 30, clickable=False),
    ],
    180,
)


def _coerce_archetype(archetype: Union[FlowArchetype, str]) -> Optional[FlowArchetype]:
    if isinstance(archetype, FlowArchetype):
        return archetype
    try:
        return FlowArchetype(str(archetype))
    except ValueError:
        return None


def resolve_flow_configuration(
    archetype: Union[FlowArchetype, str],
    service: Optional[str] = None,
    *,
    strict: bool = False,
) -> FlowConfiguration:
    """
    Resolve the step configuration for an archetype.

    ``custom`` and unrecognized archetypes resolve to a generic 3-step flow.

    Args:
        archetype: Flow archetype (enum member or its string value)
        service: Optional service identifier recorded on the configuration
        strict: Raise for unrecognized archetypes instead of falling back

    Returns:
        A fresh FlowConfiguration (callers may mutate it freely)

    Raises:
        InvalidConfigError: If ``strict`` and the archetype is unknown
    """
    resolved = _coerce_archetype(archetype)

    if resolved is None:
        if strict:
            raise InvalidConfigError(
                f"Unknown flow archetype: {archetype}",
                errors=[f'Archetype "{archetype}" is not one of {[a.value for a in FlowArchetype]}'],
            )
        logger.warning(f"Unknown flow archetype '{archetype}', falling back to generic flow")

    steps, total = _BUILT_IN_FLOWS.get(resolved, _GENERIC_FLOW)

    return FlowConfiguration(
        archetype=resolved or FlowArchetype.CUSTOM,
        service=service,
        steps=[step.model_copy() for step in steps],
        estimated_total_time_seconds=total,
        required_step_ids={step.id for step in steps if not step.optional},
        optional_step_ids={step.id for step in steps if step.optional},
    )


def validate_flow_configuration(
    config: Union[FlowConfiguration, Mapping[str, Any]]
) -> Tuple[bool, List[str]]:
    """
    Validate a flow configuration without raising.

    Args:
        config: A FlowConfiguration or a raw mapping (snake_case or camelCase keys)

    Returns:
        Tuple of (valid, errors)
    """
    if isinstance(config, FlowConfiguration):
        errors = configuration_errors(config.steps, config.required_step_ids, config.optional_step_ids)
        return not errors, errors

    try:
        FlowConfiguration.model_validate(dict(config))
    except ValidationError as e:
        errors = []
        for detail in e.errors():
            message = detail.get("msg", "")
            if message.startswith("Value error, "):
                errors.extend(message[len("Value error, "):].split("; "))
            else:
                location = ".".join(str(part) for part in detail.get("loc", ()))
                errors.append(f"{location}: {message}" if location else message)
        logger.debug(f"Flow configuration rejected: {errors}")
        return False, errors

    return True, []


def create_step(step_id: str, label: str, **options) -> StepDefinition:
    """
    Create a step definition with sensible defaults.

    Args:
        step_id: Unique step id
        label: Display label
        **options: Any other StepDefinition field

    Returns:
        StepDefinition
    """
    options.setdefault("estimated_time_seconds", DEFAULT_STEP_SECONDS)
    return StepDefinition(id=step_id, label=label, **options)


def create_flow(
    archetype: Union[FlowArchetype, str],
    steps: Iterable[StepDefinition],
    **options,
) -> FlowConfiguration:
    """
    Build a configuration from an explicit step list.

    The total time is the sum of step estimates; non-optional steps are
    required and optional steps are optional. ``options`` override any field.

    Raises:
        InvalidConfigError: If the resulting configuration is invalid
    """
    steps = list(steps)
    fields: Dict[str, Any] = {
        "archetype": _coerce_archetype(archetype) or FlowArchetype.CUSTOM,
        "steps": steps,
        "estimated_total_time_seconds": sum(
            step.estimated_time_seconds if step.estimated_time_seconds is not None else DEFAULT_STEP_SECONDS
            for step in steps
        ),
        "required_step_ids": {step.id for step in steps if not step.optional},
        "optional_step_ids": {step.id for step in steps if step.optional},
    }
    fields.update(options)

    valid, errors = validate_flow_configuration(fields)
    if not valid:
        raise InvalidConfigError("Invalid flow configuration", errors=errors)

    return FlowConfiguration(**fields)

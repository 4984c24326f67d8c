"""
Conditional step evaluation.

Applies data-driven rules to a base step list: a rule whose condition holds
inserts (or replaces) its step, a rule whose condition fails removes it.
"""
from typing import Any, List, Mapping, Sequence

from loguru import logger

from models.schemas import ConditionalRule, ConditionOperator, Step, StepCondition, StepStatus


def _compare_numbers(field_value: Any, value: Any, operator: ConditionOperator) -> bool:
    try:
        left = float(field_value)
        right = float(value)
    except (TypeError, ValueError):
        return False

    if operator == ConditionOperator.GREATER_THAN:
        return left > right
    return left < right


def _strictly_equal(left: Any, right: Any) -> bool:
    # bool is a subclass of int; True must not equal 1
    if isinstance(left, bool) != isinstance(right, bool):
        return False
    return left == right


def evaluate_condition(condition: StepCondition, data: Mapping[str, Any]) -> bool:
    """
    Evaluate a single rule condition against the form data.

    Args:
        condition: Condition with field, operator and comparison value
        data: Current form data

    Returns:
        True if the condition holds
    """
    field_value = data.get(condition.field)
    value = condition.value
    operator = condition.operator

    if operator == ConditionOperator.EQUALS:
        return _strictly_equal(field_value, value)
    if operator == ConditionOperator.NOT_EQUALS:
        return not _strictly_equal(field_value, value)
    if operator == ConditionOperator.CONTAINS:
        if isinstance(field_value, (list, tuple, set, frozenset)):
            return any(_strictly_equal(item, value) for item in field_value)
        if field_value is None:
            return False
        return str(value) in str(field_value)
    if operator in (ConditionOperator.GREATER_THAN, ConditionOperator.LESS_THAN):
        return _compare_numbers(field_value, value, operator)
    if operator == ConditionOperator.EXISTS:
        return field_value is not None

    logger.debug(f"Unknown condition operator: {operator}")
    return False


def apply_conditional_rules(
    base_steps: Sequence[Step],
    rules: Sequence[ConditionalRule],
    data: Mapping[str, Any],
) -> List[Step]:
    """
    Apply conditional rules, in order, to a base step list.

    A satisfied rule puts its step (status ``pending``) in place of an existing
    step with the same id, otherwise after ``insert_after_id`` when that step is
    present, otherwise at the end. An unsatisfied rule removes the step.

    Neither ``base_steps`` nor ``rules`` is mutated.

    Args:
        base_steps: Steps to start from
        rules: Rules to apply in list order
        data: Current form data

    Returns:
        New list of steps
    """
    result = list(base_steps)

    for rule in rules:
        existing_index = next(
            (index for index, step in enumerate(result) if step.id == rule.target_step_id),
            None,
        )

        if evaluate_condition(rule.condition, data):
            new_step = rule.step_definition.to_step(StepStatus.PENDING)

            if existing_index is not None:
                result[existing_index] = new_step
                continue

            anchor_index = None
            if rule.insert_after_id:
                anchor_index = next(
                    (index for index, step in enumerate(result) if step.id == rule.insert_after_id),
                    None,
                )

            if anchor_index is not None:
                result.insert(anchor_index + 1, new_step)
            else:
                result.append(new_step)
        elif existing_index is not None:
            del result[existing_index]

    return result

"""
Navigation rules for moving between steps.

The guard never mutates steps; it only answers whether a transition is legal
and which optional steps it would skip.
"""
from typing import Dict, List, Optional, Sequence

from models.schemas import NavigationResult, Step, StepStatus


OUT_OF_BOUNDS = "out of bounds"


class NavigationGuard:
    """
    Validates proposed step transitions.

    Rules, in order:
    1. The destination must be inside the step list.
    2. Backward and same-position moves are always allowed.
    3. Every non-optional step strictly between origin and destination must
       be completed.
    4. Pending optional steps in between are reported as skipped.
    5. The destination must be clickable and not in error.
    """

    @staticmethod
    def validate(
        from_index: int,
        to_index: int,
        steps: Sequence[Step],
        require_clickable: bool = True,
    ) -> NavigationResult:
        """
        Validate a transition from ``from_index`` to ``to_index``.

        Args:
            from_index: Index of the current step
            to_index: Requested step index
            steps: Current step list
            require_clickable: Apply the clickable check to the destination;
                               sequential advancing (next step) skips it

        Returns:
            NavigationResult with ``allowed``, ``reason`` and skipped indices
        """
        if to_index < 0 or to_index >= len(steps):
            return NavigationResult(allowed=False, reason=OUT_OF_BOUNDS)

        if to_index <= from_index:
            return NavigationResult(
                allowed=True,
                direction="backward" if to_index < from_index else "same",
            )

        skipped: List[int] = []
        for index in range(from_index + 1, to_index):
            step = steps[index]
            if not step.optional and step.status != StepStatus.COMPLETED:
                return NavigationResult(
                    allowed=False,
                    reason=f"Must complete {step.label} before proceeding",
                )
            if step.optional and step.status == StepStatus.PENDING:
                skipped.append(index)

        destination = steps[to_index]
        if require_clickable and not destination.clickable:
            return NavigationResult(
                allowed=False,
                reason=f"{destination.label} cannot be selected directly",
            )
        if destination.status == StepStatus.ERROR:
            return NavigationResult(
                allowed=False,
                reason=destination.error_message or f"{destination.label} has an error",
            )

        return NavigationResult(allowed=True, skipped_optional_indices=skipped, direction="forward")


def update_step_status(
    steps: Sequence[Step],
    index: int,
    status: StepStatus,
    error_message: Optional[str] = None,
) -> List[Step]:
    """
    Return a copy of ``steps`` with one step's status replaced.

    The error message is kept only when the new status is ``error``.
    """
    return [
        step.model_copy(update={
            "status": status,
            "error_message": error_message if status == StepStatus.ERROR else None,
        }) if position == index else step
        for position, step in enumerate(steps)
    ]


def validate_step_completion(step: Step) -> Dict[str, object]:
    """
    Check whether a step can be completed.

    Args:
        step: Step to check

    Returns:
        Dictionary with ``valid`` (bool), ``errors`` and ``warnings`` lists
    """
    errors: List[str] = []
    warnings: List[str] = []

    if not step.id:
        errors.append("Step must have an ID")
    if not step.label:
        errors.append("Step must have a label")
    if step.status == StepStatus.ERROR:
        errors.append(step.error_message or "Step has an error")
    if step.optional and step.status == StepStatus.PENDING:
        warnings.append("This step is optional and can be skipped")

    return {"valid": not errors, "errors": errors, "warnings": warnings}

"""Execution of a single workflow step against an item set."""

from __future__ import annotations

import inspect
import logging
import time
from typing import Any, List, Optional

from pydantic import ValidationError

from .contracts import (
    ItemId,
    StepOptions,
    StepOutcome,
    StepResult,
    ValidationOutcome,
    WorkflowStep,
)
from .errors import StepContractError, StepValidationError

logger = logging.getLogger(__name__)


async def validate_step(step: WorkflowStep, items: List[ItemId]) -> None:
    """Run the step pre-condition, raising ``StepValidationError`` on rejection."""
    if step.validation is None:
        return

    outcome: Any = step.validation(list(items))
    if inspect.isawaitable(outcome):
        outcome = await outcome
    if isinstance(outcome, bool):
        outcome = ValidationOutcome(valid=outcome)
    elif not isinstance(outcome, ValidationOutcome):
        outcome = ValidationOutcome.model_validate(outcome)

    if not outcome.valid:
        raise StepValidationError(outcome.message or "Validation failed", step.id)


def coerce_result(step: WorkflowStep, raw: Any, items: List[ItemId]) -> StepResult:
    """Turn an action return value into a checked ``StepResult``."""
    if isinstance(raw, StepResult):
        result = raw
    else:
        try:
            result = StepResult.model_validate(raw)
        except ValidationError as exc:
            raise StepContractError(
                f"Step {step.id} returned an invalid result: {exc}", step.id
            ) from exc

    problems = result.partition_problems(items)
    if problems:
        raise StepContractError(
            f"Step {step.id} result does not partition its items: {'; '.join(problems)}",
            step.id,
        )
    return result


async def run_step(
    step: WorkflowStep,
    items: List[ItemId],
    options: Optional[StepOptions] = None,
) -> StepOutcome:
    """Validate and run ``step`` over the full item set.

    Per-item failures are reported in the returned outcome. Any exception
    raised here is a step-level failure.
    """
    await validate_step(step, items)

    resolved = options if options is not None else step.options
    started = time.monotonic()
    raw = await step.action(list(items), resolved)
    duration = time.monotonic() - started

    result = coerce_result(step, raw, items)
    logger.debug(
        f"Step {step.id} finished in {duration:.3f}s: "
        f"{len(result.success)} succeeded, {len(result.failed)} failed"
    )
    return StepOutcome(
        success=result.success,
        failed=result.failed,
        errors=result.errors,
        duration=duration,
    )

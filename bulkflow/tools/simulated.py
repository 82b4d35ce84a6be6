"""Simulated step actions used by the bundled templates and the CLI demo."""

from __future__ import annotations

import asyncio
from typing import List

from pydantic import Field

from ..contracts import ItemId, StepOptions, StepResult


class SimulationOptions(StepOptions):
    """Options for simulated actions.

    ``fail_ids`` lists the items reported as failed; ``raise_error`` makes
    the whole step fail instead.
    """

    delay: float = Field(default=0.0, ge=0)
    fail_ids: List[ItemId] = Field(default_factory=list)
    error_message: str = "Simulated failure"
    raise_error: bool = False


async def simulate_action(items: List[ItemId], options: StepOptions) -> StepResult:
    """Sleep for ``delay`` then report the configured failures."""
    if not isinstance(options, SimulationOptions):
        options = SimulationOptions.model_validate(options.model_dump())
    if options.delay:
        await asyncio.sleep(options.delay)
    if options.raise_error:
        raise RuntimeError(options.error_message)

    failing = set(options.fail_ids)
    success = [item for item in items if item not in failing]
    failed = [item for item in items if item in failing]
    return StepResult(
        success=success,
        failed=failed,
        errors={item: options.error_message for item in failed},
    )

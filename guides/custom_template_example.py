"""Example running a custom bulk workflow with pause and resume."""

import asyncio
import logging

from pydantic import Field

from bulkflow import (
    StepOptions,
    StepResult,
    TemplateRegistry,
    WorkflowEngine,
    WorkflowStep,
    WorkflowTemplate,
)
from bulkflow.persistence import InMemoryHistoryRepository


class EndorsementOptions(StepOptions):
    message: str = "Could you endorse this skill?"
    max_requests: int = Field(default=3, ge=1)


async def request_endorsements(items, options):
    await asyncio.sleep(0.5)
    failed = [item for item in items if item.endswith("-legacy")]
    return StepResult(
        success=[item for item in items if item not in failed],
        failed=failed,
        errors={item: "Skill is archived" for item in failed},
    )


async def update_levels(items, options):
    await asyncio.sleep(0.5)
    return {"success": items, "failed": []}


template = WorkflowTemplate(
    id="endorse-skills",
    name="Endorse Skills",
    description="Request endorsements and refresh skill levels",
    category="skills",
    steps=[
        WorkflowStep(
            id="request",
            name="Request Endorsements",
            action=request_endorsements,
            options=EndorsementOptions(),
            retryable=True,
        ),
        WorkflowStep(id="levels", name="Update Levels", action=update_levels),
    ],
)


async def main():
    engine = WorkflowEngine(
        registry=TemplateRegistry([template]),
        repository=InMemoryHistoryRepository(),
    )
    engine.bus.subscribe(
        lambda s: print(f"{s.status.value}: {s.progress.overall_progress:.0f}%")
    )

    controller = engine.start(
        "endorse-skills",
        ["python", "sql", "cobol-legacy"],
        {"request": {"max_requests": 5}},
    )
    await asyncio.sleep(0.1)
    await controller.pause()
    await asyncio.sleep(1)
    await controller.resume()

    execution = await engine.wait(controller.id)
    for entry in execution.logs:
        print(entry.timestamp.strftime("%H:%M:%S"), entry.level, entry.message)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main())

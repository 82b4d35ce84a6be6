"""Shared builders for bulkflow tests."""

import asyncio
from typing import Callable, List

import pytest

from bulkflow import WorkflowEngine
from bulkflow.config import BulkflowConfig, RetryConfig
from bulkflow.contracts import StepResult, WorkflowStep, WorkflowTemplate
from bulkflow.persistence import InMemoryHistoryRepository
from bulkflow.registry import TemplateRegistry

ITEMS = ["opp-1", "opp-2", "opp-3", "opp-4", "opp-5"]


async def succeed_all(items, options):
    return StepResult(success=list(items))


def failing_action(message: str = "backend unavailable") -> Callable:
    async def action(items, options):
        raise RuntimeError(message)

    return action


def partial_action(failed_ids: List[str]) -> Callable:
    async def action(items, options):
        return {
            "success": [i for i in items if i not in failed_ids],
            "failed": [i for i in items if i in failed_ids],
            "errors": {i: "rejected" for i in items if i in failed_ids},
        }

    return action


class Gate:
    """Action that blocks until released, so tests can act mid-step."""

    def __init__(self) -> None:
        self.entered = asyncio.Event()
        self.release = asyncio.Event()
        self.calls = 0

    async def __call__(self, items, options):
        self.calls += 1
        self.entered.set()
        await self.release.wait()
        return StepResult(success=list(items))


def make_step(step_id: str, action=succeed_all, **kwargs) -> WorkflowStep:
    return WorkflowStep(id=step_id, name=step_id.title(), action=action, **kwargs)


def make_template(*steps: WorkflowStep, template_id: str = "test-template") -> WorkflowTemplate:
    return WorkflowTemplate(
        id=template_id,
        name="Test Template",
        description="Template used in tests",
        category="general",
        steps=list(steps),
    )


@pytest.fixture
def history():
    return InMemoryHistoryRepository()


@pytest.fixture
def engine_for(history):
    def build(*templates: WorkflowTemplate) -> WorkflowEngine:
        return WorkflowEngine(
            registry=TemplateRegistry(templates),
            repository=history,
            config=BulkflowConfig(retry=RetryConfig(base=0.001, jitter=0)),
        )

    return build

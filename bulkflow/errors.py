"""Exceptions raised by bulkflow."""

from __future__ import annotations

from typing import Optional


class BulkflowError(Exception):
    """Base class for all bulkflow errors."""


class TemplateNotFound(BulkflowError, KeyError):
    """Raised when a template id is not present in the registry."""

    def __init__(self, template_id: str) -> None:
        super().__init__(template_id)
        self.template_id = template_id

    def __str__(self) -> str:
        return f"Workflow template not found: {self.template_id}"


class InvalidExecutionRequest(BulkflowError, ValueError):
    """Raised when an execution cannot be created from the given input."""


class InvalidTransition(BulkflowError):
    """Raised when an execution status change is not allowed."""

    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"Cannot transition execution from {current} to {target}")
        self.current = current
        self.target = target


class StepNotSkippable(BulkflowError):
    """Raised when a skip is requested for a step that cannot be skipped."""


class StepError(BulkflowError):
    """Step-level failure, distinct from per-item failures."""

    def __init__(self, message: str, step_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.step_id = step_id


class StepValidationError(StepError):
    """The step validator rejected the item set."""


class StepContractError(StepError):
    """The step action returned a result that does not partition its input."""

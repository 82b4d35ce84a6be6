"""Text rendering helpers for the command line interface."""

from __future__ import annotations

from typing import Iterable, Optional

import typer

from ..contracts import Execution, ExecutionStatus, LogEntry, WorkflowTemplate

STATUS_COLORS = {
    ExecutionStatus.PENDING: typer.colors.WHITE,
    ExecutionStatus.RUNNING: typer.colors.BLUE,
    ExecutionStatus.PAUSED: typer.colors.YELLOW,
    ExecutionStatus.COMPLETED: typer.colors.GREEN,
    ExecutionStatus.FAILED: typer.colors.RED,
    ExecutionStatus.CANCELLED: typer.colors.BRIGHT_BLACK,
}

LEVEL_COLORS = {
    "info": None,
    "warning": typer.colors.YELLOW,
    "error": typer.colors.RED,
}


def format_duration(seconds: Optional[float]) -> str:
    """Render ``seconds`` as ``1h 2m``, ``3m 4s`` or ``5s``."""
    if seconds is None:
        return "-"
    total = int(seconds)
    minutes, secs = divmod(total, 60)
    hours, minutes = divmod(minutes, 60)
    if hours > 0:
        return f"{hours}h {minutes}m"
    if minutes > 0:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


def format_progress(execution: Execution) -> str:
    progress = execution.progress
    return (
        f"{round(progress.overall_progress)}% "
        f"({progress.completed_steps}/{progress.total_steps} steps)"
    )


def format_log_entry(entry: LogEntry) -> str:
    stamp = entry.timestamp.strftime("%H:%M:%S")
    return f"{stamp} [{entry.level}] {entry.message}"


def echo_status(execution: Execution) -> None:
    typer.secho(
        f"{execution.id}\t{execution.status.value}",
        fg=STATUS_COLORS.get(execution.status),
    )


def echo_logs(entries: Iterable[LogEntry]) -> None:
    for entry in entries:
        typer.secho(f"  {format_log_entry(entry)}", fg=LEVEL_COLORS.get(entry.level))


def describe_template(template: WorkflowTemplate) -> list[str]:
    """Return the lines shown by ``templates show``."""
    lines = [
        f"{template.name} ({template.id})",
        f"Category: {template.category}",
        template.description,
        f"Estimated duration: {format_duration(template.estimated_duration)}",
    ]
    for index, step in enumerate(template.steps, start=1):
        flags = []
        if step.can_skip:
            flags.append("optional")
        if step.retryable:
            flags.append("retryable")
        suffix = f" [{', '.join(flags)}]" if flags else ""
        lines.append(f"  {index}. {step.name} ({step.id}){suffix}")
        if step.description:
            lines.append(f"     {step.description}")
        if step.estimated_duration:
            lines.append(f"     ~{format_duration(step.estimated_duration)} estimated")
    return lines

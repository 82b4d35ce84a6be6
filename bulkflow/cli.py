"""Command line interface for running and inspecting bulk workflows."""

from __future__ import annotations

import asyncio
from typing import List, Optional

import typer

from bulkflow import REGISTRY, WorkflowEngine, get_repository
from bulkflow.cli_utils.format import (
    describe_template,
    echo_logs,
    echo_status,
    format_duration,
    format_progress,
)
from bulkflow.config import load_config
from bulkflow.contracts import Execution
from bulkflow.errors import BulkflowError

app = typer.Typer(help="CLI for bulk workflows")

# Command groups
templates_app = typer.Typer(help="Commands for browsing workflow templates")
history_app = typer.Typer(help="Commands for inspecting finished executions")

app.add_typer(templates_app, name="templates")
app.add_typer(history_app, name="history")


@app.callback()
def main() -> None:
    """Bulkflow CLI entry point."""
    pass


@templates_app.command("list")
def templates_list(
    category: Optional[str] = typer.Option(None, help="Only show this category"),
) -> None:
    """List available workflow templates."""
    templates = REGISTRY.list(category)
    if not templates:
        typer.echo("No templates found")
        return
    for template in templates:
        typer.echo(
            f"{template.id}\t{template.category}\t{len(template.steps)} steps\t{template.name}"
        )


@templates_app.command("show")
def templates_show(template_id: str) -> None:
    """Show the steps of a workflow template."""
    if template_id not in REGISTRY:
        typer.secho(f"Template not found: {template_id}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    for line in describe_template(REGISTRY.get(template_id)):
        typer.echo(line)


@app.command("run")
def run(
    template_id: str,
    items: List[str],
    fail: List[str] = typer.Option(
        [], "--fail", help="Item id every simulated step reports as failed"
    ),
    delay: float = typer.Option(0.0, help="Seconds each simulated step takes"),
    tail: Optional[int] = typer.Option(None, help="Log lines shown at the end"),
) -> None:
    """
    Run a bulk workflow over ITEMS with the bundled simulated actions.

    Example:
        bulkflow run bulk-skill-verification skill-1 skill-2 --fail skill-2
    """
    config = load_config()
    if template_id not in REGISTRY:
        typer.secho(f"Template not found: {template_id}", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    template = REGISTRY.get(template_id)
    overrides = {
        step.id: {"delay": delay, "fail_ids": list(fail)} for step in template.steps
    }
    engine = WorkflowEngine(config=config, repository=get_repository())

    def on_snapshot(snapshot: Execution) -> None:
        if not snapshot.is_terminal:
            typer.echo(f"{snapshot.status.value}: {format_progress(snapshot)}")

    engine.bus.subscribe(on_snapshot)
    try:
        execution = asyncio.run(engine.run(template_id, items, overrides))
    except BulkflowError as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1)

    echo_status(execution)
    typer.echo(f"Progress: {format_progress(execution)}")
    typer.echo(f"Duration: {format_duration(execution.duration)}")
    echo_logs(execution.log_tail(config.log_tail if tail is None else tail))
    if execution.status.value != "completed":
        raise typer.Exit(code=1)


@history_app.command("list")
def history_list(limit: Optional[int] = None) -> None:
    """List finished executions, most recent first."""
    repo = get_repository()
    executions = asyncio.run(repo.list_executions(limit))
    if not executions:
        typer.echo("No executions found")
        return
    for execution in executions:
        typer.echo(
            f"{execution.id}\t{execution.template_id}\t{execution.status.value}\t"
            f"{len(execution.items)} items\t{format_duration(execution.duration)}"
        )


@history_app.command("show")
def history_show(execution_id: str) -> None:
    """Show results and the full log of a finished execution."""
    repo = get_repository()
    execution = asyncio.run(repo.get_execution(execution_id))
    if execution is None:
        typer.echo("Execution not found")
        raise typer.Exit(code=1)
    typer.echo(
        f"Execution {execution.id}: {execution.status.value} ({execution.template_id})"
    )
    typer.echo(f"Items: {', '.join(execution.items)}")
    typer.echo(f"Progress: {format_progress(execution)}")
    for step_id, outcome in execution.results.items():
        typer.echo(
            f"- {step_id}: {len(outcome.success)} succeeded, {len(outcome.failed)} failed"
            f" ({outcome.duration:.2f}s)"
        )
        for item, error in outcome.errors.items():
            typer.echo(f"    {item}: {error}")
    echo_logs(execution.logs)


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()

#!/usr/bin/env python3
"""
IdLE Control CLI - Command Line Interface for the IdLE Engine.

Provides commands for validating workflows, building and exporting plans,
executing them against the configured providers and listing the step
types the engine knows about.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from ..audit import AuditLogger
from ..engine import ExecutionEngine, HandlerRegistry, PlanBuilder, StepMetadataCatalog, export_plan_json
from ..engine.capabilities import get_available_capabilities
from ..engine.planner import validate_workflow
from ..errors import IdleEngineError, WorkflowValidationError
from ..models import ExecutionResult, OnFailureStatus, Plan, RunStatus, StepResultStatus
from ..settings import build_providers, load_engine_config
from ..workflows import get_bundled_workflow_path, load_request, load_workflow

logger = logging.getLogger(__name__)

# Rich console for pretty output
console = Console()

STATUS_STYLES = {
    "Completed": "green",
    "Planned": "green",
    "Failed": "red",
    "PartiallyFailed": "yellow",
    "NotApplicable": "dim",
    "NotRun": "dim",
    "WhatIf": "blue",
}


class IdleController:
    """Wires the engine components from the configuration file."""

    def __init__(self, config_path: Optional[str] = None):
        """Initialize the controller."""
        self.config = load_engine_config(config_path)
        self.providers = build_providers(self.config)
        self.catalog = StepMetadataCatalog(self.config.step_metadata)
        self.handlers = HandlerRegistry(self.config.step_handlers)
        self.planner = PlanBuilder(self.catalog, self.config.working_directory)

    def build_engine(self, audit_dir: Optional[str] = None) -> ExecutionEngine:
        """Execution engine writing events to the audit directory, if any."""
        audit_dir = audit_dir or self.config.audit_dir
        sink = AuditLogger(audit_dir) if audit_dir else None
        return ExecutionEngine(self.handlers, self.config.execution_options, event_sink=sink)

    def build_plan(self, workflow_ref: str, request_file: str) -> Plan:
        workflow = load_workflow(resolve_workflow_path(workflow_ref))
        request = load_request(request_file)
        return self.planner.build(workflow, request, self.providers, self.config.execution_options)


def resolve_workflow_path(workflow_ref: str) -> Path:
    """A workflow file path, or the name of a bundled workflow."""
    path = Path(workflow_ref)
    if path.exists():
        return path
    return get_bundled_workflow_path(workflow_ref)


def report_error(error: Exception) -> None:
    """Print an engine error and exit non-zero."""
    if isinstance(error, WorkflowValidationError):
        console.print(f"[red]✗ Workflow validation failed with {len(error.errors)} error(s):[/red]")
        for message in error.errors:
            console.print(f"  - {message}")
    else:
        console.print(f"[red]✗ {type(error).__name__}: {error}[/red]")
    sys.exit(1)


@click.group()
@click.option('--config', '-c', type=click.Path(exists=True, dir_okay=False), help='Path to engine configuration file')
@click.option('--verbose', '-v', is_flag=True, help='Enable info-level logging')
@click.pass_context
def cli(ctx, config, verbose):
    """IdLE Control CLI - Identity Lifecycle Engine"""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )
    ctx.ensure_object(dict)
    try:
        ctx.obj['controller'] = IdleController(config)
    except (IdleEngineError, ValueError) as e:
        report_error(e)


@cli.command()
@click.argument('workflow')
def validate(workflow):
    """Validate the shape of a workflow definition."""
    try:
        data = load_workflow(resolve_workflow_path(workflow))
    except (FileNotFoundError, ValueError) as e:
        report_error(e)
        return

    errors = validate_workflow(data)
    if errors:
        report_error(WorkflowValidationError(errors, data.get('Name')))
        return

    console.print(f"[green]✓ Workflow '{data['Name']}' is valid[/green]")


@cli.command()
@click.argument('workflow')
@click.argument('request_file', type=click.Path(exists=True, dir_okay=False))
@click.option('--export', 'export_path', type=click.Path(dir_okay=False), help='Write the plan export JSON to this file')
@click.option('--environment', help='Environment name recorded in the export metadata')
@click.pass_context
def plan(ctx, workflow, request_file, export_path, environment):
    """Build a plan for a workflow and a lifecycle request."""
    controller = ctx.obj['controller']

    try:
        built = controller.build_plan(workflow, request_file)
    except (IdleEngineError, FileNotFoundError, ValueError) as e:
        report_error(e)
        return

    display_plan(built)

    if export_path:
        export_plan_json(built, export_path, environment=environment)
        console.print(f"[blue]Plan exported to {export_path}[/blue]")


@cli.command()
@click.argument('workflow')
@click.argument('request_file', type=click.Path(exists=True, dir_okay=False))
@click.option('--what-if', is_flag=True, help='Validate the plan without running any step')
@click.option('--audit-dir', type=click.Path(file_okay=False), help='Directory for the JSONL event audit trail')
@click.pass_context
def run(ctx, workflow, request_file, what_if, audit_dir):
    """Plan and execute a workflow."""
    controller = ctx.obj['controller']

    try:
        built = controller.build_plan(workflow, request_file)
        engine = controller.build_engine(audit_dir)
        result = engine.execute(built, controller.providers, what_if=what_if)
    except (IdleEngineError, FileNotFoundError, ValueError) as e:
        report_error(e)
        return

    display_execution_results(built, result)

    if result.status == RunStatus.FAILED:
        sys.exit(1)


@cli.command()
@click.pass_context
def capabilities(ctx):
    """List step types, their required capabilities and what providers offer."""
    controller = ctx.obj['controller']

    table = Table(title="Step Types")
    table.add_column("Step Type", style="cyan")
    table.add_column("Required Capabilities", style="magenta")
    table.add_column("Handler", style="green")

    for step_type in controller.catalog.step_types():
        table.add_row(
            step_type,
            ", ".join(controller.catalog.get_required_capabilities(step_type)) or "-",
            controller.handlers.get_reference(step_type) or "N/A",
        )
    console.print(table)

    available = get_available_capabilities(controller.providers)
    console.print(f"\n[bold]Provider Capabilities ({len(available)})[/bold]")
    for capability in available:
        console.print(f"  {capability}")


@cli.command()
@click.option('--port', default=8000, help='Port to run the API server on')
@click.option('--host', default='127.0.0.1', help='Host to bind the API server to')
def serve(port, host):
    """Start the IdLE Engine API server."""
    from ..api.server import start_server

    console.print(f"[green]Starting IdLE Engine API server on {host}:{port}[/green]")
    console.print("[blue]Press Ctrl+C to stop[/blue]")

    try:
        start_server(host=host, port=port, reload=False)
    except KeyboardInterrupt:
        console.print("[yellow]Server stopped[/yellow]")


def display_plan(built: Plan):
    """Display the steps of a plan."""
    console.print(f"[green]✓ Plan built for workflow '{built.workflow_name}'[/green]")

    table = Table(title=f"Plan ({built.correlation_id})")
    table.add_column("Section", style="cyan")
    table.add_column("Step", style="green")
    table.add_column("Type", style="yellow")
    table.add_column("Status")
    table.add_column("Capabilities", style="magenta")

    for section, steps in (("Steps", built.steps), ("OnFailure", built.on_failure_steps)):
        for step in steps:
            status = step.status.value
            table.add_row(
                section,
                step.name,
                step.type,
                f"[{STATUS_STYLES.get(status, 'white')}]{status}[/]",
                ", ".join(step.requires_capabilities) or "-",
            )

    console.print(table)


def display_execution_results(built: Plan, result: ExecutionResult):
    """Display execution results."""
    if result.status == RunStatus.COMPLETED:
        console.print("[green]✓ Run completed successfully[/green]")
    elif result.status == RunStatus.WHAT_IF:
        console.print("[blue]WhatIf: plan is executable, no steps were run[/blue]")
        display_plan(built)
        return
    else:
        failed = [s.name for s in result.steps if s.status == StepResultStatus.FAILED]
        console.print(f"[red]✗ Run failed at step {', '.join(failed)}[/red]")

    table = Table(title="Run Summary")
    table.add_column("Step", style="cyan")
    table.add_column("Status")
    table.add_column("Attempts", style="magenta")
    table.add_column("Error", style="red")

    for step in result.steps + result.on_failure.steps:
        status = step.status.value
        table.add_row(
            step.name,
            f"[{STATUS_STYLES.get(status, 'white')}]{status}[/]",
            str(step.attempts),
            step.error or "",
        )

    console.print(table)
    console.print(f"Correlation ID: {result.correlation_id}")
    console.print(f"Events: {len(result.events)}")
    if result.on_failure.status != OnFailureStatus.NOT_RUN:
        console.print(f"OnFailure: {result.on_failure.status.value}")


def main():
    """Console script entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()

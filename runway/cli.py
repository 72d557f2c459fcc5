"""Command line interface for running runway workers."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Optional

import typer

from runway import workflows
from runway.config import load_config
from runway.contracts import RecordNotFound, RetryNotAllowed, WorkflowError, WorkflowTrigger
from runway.dispatch import JobDispatcher
from runway.execute import WorkflowEngine
from runway.models import RecordKind
from runway.persistence import get_repository
from runway.services import build_services
from runway.stores import get_stores
from runway.transports import get_transport

app = typer.Typer(help="CLI for runway media workflows")

# Command groups
worker_app = typer.Typer(help="Commands for running workers")
execution_app = typer.Typer(help="Commands for inspecting execution history")
workflow_app = typer.Typer(help="Commands for the workflow catalogue")
job_app = typer.Typer(help="Commands for entity records")
trigger_app = typer.Typer(help="Commands for publishing triggers")

app.add_typer(worker_app, name="worker")
app.add_typer(execution_app, name="execution")
app.add_typer(workflow_app, name="workflow")
app.add_typer(job_app, name="job")
app.add_typer(trigger_app, name="trigger")


@app.callback()
def main(
    log_level: str = typer.Option("INFO", help="Logging level for runway loggers"),
) -> None:
    """runway CLI entry point."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@worker_app.command("run")
def worker_run(
    lifespan: Optional[float] = None,
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to config YAML"),
) -> None:
    """
    Run a worker that executes every registered workflow.

    Subscribes to the trigger topic on the configured transport and records
    execution history in the configured repository.

    Example:
        runway worker run
        runway worker run --lifespan 300 --config ./config.yaml
    """
    config = load_config(config_path)
    engine = WorkflowEngine(
        get_transport(config=config),
        build_services(config),
        registry=workflows.REGISTRY,
        repository=get_repository(config=config),
        config=config.engine,
        topic=config.transport.topic,
    )
    typer.echo(f"Starting worker on topic {config.transport.topic}")
    asyncio.run(engine.start(lifespan=lifespan))


@execution_app.command("list")
def execution_list() -> None:
    """
    List executions with their status.

    Example:
        runway execution list
        # Output: 3f2c...    generate-video    succeeded    attempts=2
    """
    repo = get_repository()
    executions = asyncio.run(repo.list_executions())
    if not executions:
        typer.echo("No executions found")
        return
    for ex in executions:
        typer.echo(f"{ex.execution_id}\t{ex.workflow_name}\t{ex.status}\tattempts={ex.attempts}")


@execution_app.command("show")
def execution_show(execution_id: str) -> None:
    """Show payload, outcome and per-attempt step history for one execution."""
    repo = get_repository()
    ex = asyncio.run(repo.get_execution(execution_id))
    if ex is None:
        typer.echo("Execution not found")
        raise typer.Exit(code=1)
    typer.echo(f"Execution {ex.execution_id}: {ex.workflow_name} {ex.status}")
    if ex.payload:
        typer.echo(f"Payload: {json.dumps(ex.payload)}")
    if ex.error:
        typer.echo(f"Error: {ex.error}")
    for step in ex.steps:
        typer.echo(
            f"- [attempt {step.attempt}] {step.step_name}: {step.status}"
            + (
                f" ({step.started_at} -> {step.completed_at})"
                if step.started_at or step.completed_at
                else ""
            )
        )


@workflow_app.command("list")
def workflow_list() -> None:
    """List registered workflows with their trigger event, budget and cost."""
    snapshot = workflows.REGISTRY.snapshot()
    for wf in snapshot.workflows:
        refund = "refund" if wf.refund_on_failure else "no refund"
        typer.echo(
            f"{wf.event}\t{wf.name}\tretries={wf.retries}\tcost={wf.cost} ({refund})"
        )
        typer.echo(f"  Steps: {', '.join(wf.steps)}")


@job_app.command("retry")
def job_retry(
    kind: RecordKind,
    record_id: str,
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to config YAML"),
) -> None:
    """
    Reset a failed record to pending and re-emit its original trigger.

    Example:
        runway job retry jobs 8d1e...
    """
    config = load_config(config_path)
    records, accounts = get_stores(config=config)
    dispatcher = JobDispatcher(
        get_transport(config=config),
        records,
        accounts,
        registry=workflows.REGISTRY,
        topic=config.transport.topic,
    )
    try:
        trigger = asyncio.run(dispatcher.retry(kind, record_id))
    except (RecordNotFound, RetryNotAllowed) as e:
        typer.secho(str(e), fg=typer.colors.RED)
        raise typer.Exit(code=1)
    except WorkflowError as e:
        typer.secho(f"Retry failed: {e}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    typer.echo(f"Retry dispatched: {trigger.trigger_id}")


@trigger_app.command("send")
def trigger_send(
    event_name: str,
    payload: str = typer.Option("{}", help="JSON payload for the trigger"),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to config YAML"),
) -> None:
    """Publish a raw trigger for an existing record."""
    if event_name not in workflows.REGISTRY:
        typer.secho(f"No workflow registered for event '{event_name}'", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        typer.secho(f"Invalid JSON payload: {e}", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    config = load_config(config_path)
    trigger = WorkflowTrigger(event_name=event_name, payload=data)
    asyncio.run(get_transport(config=config).publish(config.transport.topic, trigger))
    typer.echo(f"Trigger published: {trigger.trigger_id}")


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()

"""CLI entry point for the Realty Coordinator."""

from __future__ import annotations

import asyncio
import logging
import uuid

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from realty_coordinator import __version__
from realty_coordinator.agents.base import AgentContext, AgentResponse
from realty_coordinator.config import Settings, get_settings
from realty_coordinator.engine.coordinator import DEFAULT_STRATEGY, AgentCoordinator
from realty_coordinator.errors import CoordinatorError
from realty_coordinator.strategies import STRATEGIES

console = Console()
err_console = Console(stderr=True)


def configure_logging(level: str = "INFO") -> None:
    """Route library logging through rich on stderr."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def build_coordinator(settings: Settings, journal: bool = True) -> AgentCoordinator:
    """Coordinator wired from settings, journaling to SQLite unless disabled."""
    task_journal = None
    if journal:
        from realty_coordinator.storage.database import Database, TaskJournal

        task_journal = TaskJournal(Database(settings.data_dir))
    return AgentCoordinator(settings=settings, journal=task_journal)


@click.group()
@click.version_option(version=__version__, prog_name="realty")
@click.option("--log-level", default=None, help="Logging level (default: REALTY_LOG_LEVEL or INFO)")
@click.pass_context
def main(ctx: click.Context, log_level: str | None) -> None:
    """Realty Coordinator: route real-estate tasks to specialist agents."""
    settings = get_settings()
    configure_logging(log_level or settings.log_level)
    ctx.obj = settings


@main.command()
@click.pass_obj
def init(settings: Settings) -> None:
    """Initialize the data directory and task journal."""
    from realty_coordinator.storage.database import Database

    db = Database(settings.data_dir)
    db.ensure_tables()
    console.print(f"[green]Realty coordinator initialized at {db.data_dir}[/green]")
    console.print(f"  Database: {db.db_path}")


@main.command()
@click.argument("task")
@click.option(
    "--strategy",
    type=click.Choice(sorted(STRATEGIES)),
    default=DEFAULT_STRATEGY,
    show_default=True,
    help="Coordination strategy",
)
@click.option("--session", "session_id", default=None, help="Session id (random if omitted)")
@click.option("--user", "user_id", default=None, help="User id")
@click.option("--project", "project_id", default=None, help="Project id for project requests")
@click.pass_obj
def run(settings: Settings, task: str, strategy: str, session_id: str | None,
        user_id: str | None, project_id: str | None) -> None:
    """Run TASK through the agent coordinator."""
    coordinator = build_coordinator(settings)
    context = AgentContext(
        session_id=session_id or f"cli-{uuid.uuid4().hex[:8]}",
        user_id=user_id,
        project_context={"project_id": project_id} if project_id else {},
    )

    console.print(f"[bold cyan]{strategy}:[/bold cyan] {task}")
    try:
        response = asyncio.run(coordinator.execute_task(task, context, strategy))
    except (CoordinatorError, ValueError) as e:
        console.print(f"[red]Task failed:[/red] {e}")
        raise SystemExit(1) from e
    _print_response(response)


@main.command()
@click.pass_obj
def agents(settings: Settings) -> None:
    """List registered agents and their tools."""
    coordinator = build_coordinator(settings, journal=False)

    table = Table(title="Registered Agents")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Active", style="green")
    table.add_column("Tools", max_width=60)

    for registration in coordinator.get_agent_status():
        tools = ", ".join(t.name for t in registration.agent.get_tools())
        table.add_row(
            registration.id,
            registration.name,
            "yes" if registration.is_active else "no",
            tools,
        )

    console.print(table)


@main.command()
@click.argument("task_id", required=False)
@click.option("--limit", default=20, help="Number of entries to show")
@click.pass_obj
def history(settings: Settings, task_id: str | None, limit: int) -> None:
    """Show recent tasks from the journal, or one task by TASK_ID."""
    from realty_coordinator.storage.database import Database, TaskJournal

    journal = TaskJournal(Database(settings.data_dir))
    if task_id is not None:
        task = journal.get_task(task_id)
        if task is None:
            console.print(f"[red]Task not found:[/red] {task_id}")
            raise SystemExit(1)
        _print_task(task)
        return

    tasks = journal.recent_tasks(limit)
    if not tasks:
        console.print("[dim]No task history yet. Run a task first.[/dim]")
        return

    table = Table(title="Task History")
    table.add_column("Task", style="cyan")
    table.add_column("Agent")
    table.add_column("Strategy")
    table.add_column("Status")
    table.add_column("Input", max_width=40)
    table.add_column("Created")

    for task in tasks:
        color = "green" if task["status"] == "completed" else "red"
        table.add_row(
            task["id"],
            task["agent_id"],
            task["strategy"],
            f"[{color}]{task['status']}[/{color}]",
            task["input"][:40],
            str(task["created_at"])[:19],
        )

    console.print(table)
    stats = journal.get_stats()
    counts = ", ".join(f"{status}: {n}" for status, n in sorted(stats["by_status"].items()))
    console.print(f"Total tasks: {stats['total_tasks']} ({counts})")


@main.command()
@click.pass_obj
def workflows(settings: Settings) -> None:
    """List workflows registered in the journal."""
    from realty_coordinator.storage.database import Database, TaskJournal

    registered = TaskJournal(Database(settings.data_dir)).workflows()
    if not registered:
        console.print("[dim]No workflows registered.[/dim]")
        return

    table = Table(title="Workflows")
    table.add_column("Workflow", style="cyan", overflow="fold")
    table.add_column("Name")
    table.add_column("Trigger", no_wrap=True)
    table.add_column("Agents")
    table.add_column("Schedule", no_wrap=True)

    for wf in registered:
        table.add_row(
            wf["workflow_id"],
            wf["name"],
            wf["trigger"],
            ", ".join(wf["agents"]),
            wf["schedule"] or "-",
        )

    console.print(table)


@main.command()
@click.argument("name")
@click.option("--trigger", required=True, help="Trigger name, e.g. construction_milestone")
@click.option("--agent", "agent_ids", multiple=True, required=True, help="Agent id (repeatable)")
@click.option("--schedule", default=None, help="Schedule expression for an external scheduler")
@click.pass_obj
def workflow(settings: Settings, name: str, trigger: str, agent_ids: tuple[str, ...],
             schedule: str | None) -> None:
    """Register an automated workflow NAME."""
    coordinator = build_coordinator(settings)
    try:
        descriptor = coordinator.setup_automated_workflow(
            {"name": name, "trigger": trigger, "agents": list(agent_ids), "schedule": schedule}
        )
    except CoordinatorError as e:
        console.print(f"[red]Workflow rejected:[/red] {e}")
        raise SystemExit(1) from e

    console.print(f"[green]Registered {descriptor.workflow_id}[/green]")
    for step in descriptor.steps:
        console.print(f"  - {step}")


@main.command()
@click.argument("task")
@click.pass_obj
def score(settings: Settings, task: str) -> None:
    """Show which agents TASK would be routed to, without running them."""
    from realty_coordinator.engine import selection

    coordinator = build_coordinator(settings, journal=False)
    registrations = coordinator.get_agent_status()
    relevant = selection.relevant_agents(task, registrations)
    best = selection.select_best_agent(task, registrations)

    table = Table(title="Routing")
    table.add_column("Agent", style="cyan")
    table.add_column("Relevant")
    table.add_column("Score", style="bold")

    relevant_ids = {r.id for r in relevant}
    for registration, points in selection.score_agents(task, registrations):
        table.add_row(registration.id, "yes" if registration.id in relevant_ids else "no",
                      str(points))

    console.print(table)
    if best is None:
        console.print("[red]No suitable agent[/red]")
    else:
        console.print(f"[bold]Smart routing:[/bold] {best.id}")


def _print_response(response: AgentResponse) -> None:
    """Print an agent response summary."""
    color = "yellow" if response.needs_human_intervention else "green"
    console.print(f"\n{response.message}\n")
    console.print(f"[{color}]Confidence: {response.confidence:.2f}[/{color}]")
    if response.tools_used:
        console.print(f"Tools: {', '.join(response.tools_used)}")
    if response.needs_human_intervention:
        console.print("[yellow]Needs human review[/yellow]")
    if response.next_steps:
        console.print("\n[bold]Next steps:[/bold]")
        for step in response.next_steps:
            console.print(f"  - {step}")


def _print_task(task: dict) -> None:
    """Print one journaled task."""
    color = "green" if task["status"] == "completed" else "red"
    console.print(f"[bold cyan]{task['id']}[/bold cyan] [{color}]{task['status']}[/{color}]")
    console.print(f"Input: {task['input']}")
    console.print(f"Agent: {task['agent_id']}  Strategy: {task['strategy']}")
    if task["context"]:
        console.print(f"Session: {task['context']['session_id']}")
    console.print(f"Created: {task['created_at']}")
    if task["completed_at"]:
        console.print(f"Completed: {task['completed_at']}")
    if task["error"]:
        console.print(f"[red]Error: {task['error']}[/red]")
    if task["result"]:
        console.print(f"\n{task['result']['message']}")

"""PMTrack CLI.

Commands:
- init: Initialize database schema
- occurrences: Show a schedule's occurrences and their status
- due: Show due/overdue occurrences across active schedules
- materialize: Generate the work order for one occurrence (or all)
- transition: Move a work order to a new lifecycle status
- serve: Run the HTTP API
"""

from __future__ import annotations

import asyncio
from datetime import date, datetime, timezone
from uuid import UUID

import typer
from rich.console import Console
from rich.table import Table

from pmtrack.config import get_config
from pmtrack.core.logging import configure_logging
from pmtrack.db.connection import close_db, get_session, init_db
from pmtrack.db.repository import MaintenanceRepository
from pmtrack.errors import PMTrackError
from pmtrack.scheduling.manager import PMScheduleManager
from pmtrack.scheduling.models import OccurrenceStatus
from pmtrack.workorders.lifecycle import change_status

app = typer.Typer(
    name="pmtrack",
    help="PMTrack - preventive maintenance scheduling and work orders",
    no_args_is_help=True,
)

console = Console()

_STATUS_STYLES = {
    OccurrenceStatus.UPCOMING: "cyan",
    OccurrenceStatus.DUE: "yellow",
    OccurrenceStatus.OVERDUE: "red",
    OccurrenceStatus.COMPLETED: "green",
}


def _run(coro):
    """Run a coroutine, dispose the engine, and print core errors cleanly."""

    async def _wrapped():
        try:
            return await coro
        finally:
            await close_db()

    try:
        return asyncio.run(_wrapped())
    except PMTrackError as exc:
        console.print(f"[bold red]✗[/bold red] {exc.kind}: {exc.to_dict()['context']}")
        raise typer.Exit(code=1)


def _parse_today(value: str | None) -> date:
    return date.fromisoformat(value) if value else date.today()


@app.callback()
def main(log_level: str = typer.Option("WARNING", "--log-level", help="Log level")):
    configure_logging(level=log_level)


@app.command()
def init(
    drop: bool = typer.Option(False, "--drop", help="Drop existing tables"),
):
    """Initialize database schema."""
    config = get_config()
    console.print(f"[bold]Initializing database:[/bold] {config.db.url}")
    _run(init_db(drop=drop))
    console.print("[bold green]✓[/bold green] Database initialized")


@app.command()
def occurrences(
    schedule_id: UUID = typer.Argument(..., help="PM schedule id"),
    today: str | None = typer.Option(None, "--today", help="Reference date (YYYY-MM-DD)"),
):
    """Show every occurrence of a schedule with its live status."""
    reference = _parse_today(today)

    async def _list():
        async with get_session() as session:
            manager = PMScheduleManager(MaintenanceRepository(session))
            schedule = await manager.repository.get_schedule(schedule_id)
            return schedule, await manager.list_occurrences(schedule, reference)

    schedule, items = _run(_list())

    table = Table(title=f"{schedule.title} (as of {reference.isoformat()})")
    table.add_column("#", justify="right")
    table.add_column("Due date")
    table.add_column("Status")
    table.add_column("Work order")
    table.add_column("Link")
    for occurrence in items:
        style = _STATUS_STYLES[occurrence.status]
        table.add_row(
            str(occurrence.sequence_index + 1),
            occurrence.due_date.isoformat(),
            f"[{style}]{occurrence.status.value}[/{style}]",
            str(occurrence.work_order_id or "-"),
            occurrence.link_source.value if occurrence.link_source else "-",
        )
    console.print(table)


@app.command()
def due(
    today: str | None = typer.Option(None, "--today", help="Reference date (YYYY-MM-DD)"),
):
    """List due and overdue occurrences across all active schedules."""
    reference = _parse_today(today)

    async def _due():
        async with get_session() as session:
            manager = PMScheduleManager(MaintenanceRepository(session))
            return await manager.list_due_occurrences(reference)

    items = _run(_due())
    if not items:
        console.print("[green]Nothing due.[/green]")
        return

    table = Table(title=f"Due maintenance (as of {reference.isoformat()})")
    table.add_column("Schedule")
    table.add_column("#", justify="right")
    table.add_column("Due date")
    table.add_column("Status")
    for occurrence in items:
        style = _STATUS_STYLES[occurrence.status]
        table.add_row(
            str(occurrence.schedule_id),
            str(occurrence.sequence_index + 1),
            occurrence.due_date.isoformat(),
            f"[{style}]{occurrence.status.value}[/{style}]",
        )
    console.print(table)


@app.command()
def materialize(
    schedule_id: UUID = typer.Argument(..., help="PM schedule id"),
    index: int | None = typer.Argument(None, help="Zero-based occurrence index"),
):
    """Generate work orders for one occurrence, or every occurrence if no index."""
    now = datetime.now(timezone.utc)

    async def _materialize():
        async with get_session() as session:
            manager = PMScheduleManager(MaintenanceRepository(session))
            schedule = await manager.repository.get_schedule(schedule_id)
            if index is None:
                return await manager.materialize_all(schedule, now)
            return [await manager.materialize_occurrence(schedule, index, now)]

    for work_order in _run(_materialize()):
        console.print(
            f"[bold green]✓[/bold green] {work_order.work_order_number} "
            f"{work_order.title} [dim]({work_order.status.value}, "
            f"needed {work_order.date_needed})[/dim]"
        )


@app.command()
def transition(
    work_order_id: UUID = typer.Argument(..., help="Work order id"),
    status: str = typer.Argument(..., help="Target status"),
    notes: str | None = typer.Option(None, "--notes", help="Completion notes"),
):
    """Move a work order to a new lifecycle status."""
    now = datetime.now(timezone.utc)

    async def _transition():
        async with get_session() as session:
            return await change_status(
                MaintenanceRepository(session),
                work_order_id,
                status,
                now,
                completion_notes=notes,
            )

    work_order = _run(_transition())
    console.print(
        f"[bold green]✓[/bold green] {work_order.work_order_number} -> "
        f"{work_order.status.value}"
    )
    if work_order.actual_cost is not None:
        console.print(f"  Actual cost: {work_order.actual_cost} {get_config().costing.currency}")


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host"),
    port: int = typer.Option(8000, "--port"),
    reload: bool = typer.Option(False, "--reload"),
):
    """Run the HTTP API with uvicorn."""
    import uvicorn

    uvicorn.run("pmtrack.web.app:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()

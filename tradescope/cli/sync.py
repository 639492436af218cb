"""Broker sync CLI commands."""

from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from tradescope.cli.common import get_database, require_user
from tradescope.core.brokers import get_broker_sync_service
from tradescope.core.scheduler import SyncScheduler

console = Console()
app = typer.Typer()


@app.command("run")
def run_sync(
    ctx: typer.Context,
    user: Optional[str] = typer.Option(
        None,
        "--user",
        "-u",
        help="User email (default: all active users)",
    ),
):
    """Import trades from every connected broker once."""
    with get_database(ctx).session() as db:
        service = get_broker_sync_service(db)
        if user:
            results = service.sync_all(require_user(db, user))
        else:
            results = service.sync_all_users()

        if not results:
            console.print("[yellow]No brokers to sync.[/yellow]")
            return

        table = Table(title="Sync Results")
        table.add_column("Broker")
        table.add_column("Imported", justify="right")
        table.add_column("Total", justify="right")
        table.add_column("Result")

        for result in results:
            table.add_row(
                result.broker_name,
                str(result.imported_count),
                str(result.total_trades),
                "[green]OK[/green]" if result.success else f"[red]{result.error}[/red]",
            )

        console.print(table)


@app.command("schedule")
def schedule(
    ctx: typer.Context,
    interval: Optional[int] = typer.Option(
        None,
        "--interval",
        "-i",
        help="Seconds between syncs (default: SYNC_INTERVAL_SECONDS)",
    ),
):
    """Run broker syncs on an interval until interrupted."""
    SyncScheduler(database=get_database(ctx), interval_seconds=interval).start()

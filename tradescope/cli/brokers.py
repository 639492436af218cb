"""Broker connection CLI commands."""

from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from tradescope.cli.common import fmt_time, get_database, require_user
from tradescope.core.brokers import (
    BrokerCreate,
    BrokerCredentials,
    BrokerType,
    CredentialStore,
    connection_tester,
)

console = Console()
app = typer.Typer()

BROKER_CHOICES = ", ".join(t.value for t in BrokerType)


def _credentials(
    api_key: Optional[str],
    api_secret: Optional[str],
    user_id: Optional[str],
    password: Optional[str],
    totp_key: Optional[str],
    server: Optional[str],
) -> dict:
    return {
        "api_key": api_key,
        "api_secret": api_secret,
        "account_user_id": user_id,
        "password": password,
        "totp_key": totp_key,
        "server_address": server,
    }


@app.command("list")
def list_brokers(
    ctx: typer.Context,
    user: str = typer.Option(..., "--user", "-u", help="User email"),
):
    """List a user's broker connections."""
    with get_database(ctx).session() as db:
        user_obj = require_user(db, user)
        brokers = CredentialStore(db, user_obj).list().data

        if not brokers:
            console.print("[yellow]No broker connections.[/yellow]")
            console.print(f"\nAdd one with: tradescope brokers add --user {user} <name> --type <{BROKER_CHOICES}>")
            return

        table = Table(title="Broker Connections")
        table.add_column("ID", style="dim")
        table.add_column("Name")
        table.add_column("Type")
        table.add_column("Status")
        table.add_column("Last Synced")

        for broker in brokers:
            status = "[green]Active[/green]" if broker.is_active else "[dim]Inactive[/dim]"
            table.add_row(
                broker.id[:8] + "...",
                broker.broker_name,
                broker.broker_type,
                status,
                fmt_time(broker.last_synced_at),
            )

        console.print(table)


@app.command("test")
def test_broker(
    broker_type: str = typer.Argument(..., help=f"Broker type ({BROKER_CHOICES})"),
    api_key: Optional[str] = typer.Option(None, "--api-key"),
    api_secret: Optional[str] = typer.Option(None, "--api-secret"),
    user_id: Optional[str] = typer.Option(None, "--user-id", help="Broker account user ID"),
    password: Optional[str] = typer.Option(None, "--password"),
    totp_key: Optional[str] = typer.Option(None, "--totp-key"),
    server: Optional[str] = typer.Option(None, "--server", help="MT5 server address"),
):
    """Check a credential set without storing it."""
    result = connection_tester.test(
        broker_type,
        _credentials(api_key, api_secret, user_id, password, totp_key, server),
    )

    if not result.success:
        console.print(f"[red]Connection test failed: {result.error}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]Connection test passed[/green] ({result.data['status']})")


@app.command("add")
def add_broker(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Connection name"),
    user: str = typer.Option(..., "--user", "-u", help="User email"),
    broker_type: Optional[str] = typer.Option(None, "--type", "-t", help=f"Broker type ({BROKER_CHOICES})"),
    api_key: Optional[str] = typer.Option(None, "--api-key"),
    api_secret: Optional[str] = typer.Option(None, "--api-secret"),
    user_id: Optional[str] = typer.Option(None, "--user-id", help="Broker account user ID"),
    password: Optional[str] = typer.Option(None, "--password"),
    totp_key: Optional[str] = typer.Option(None, "--totp-key"),
    server: Optional[str] = typer.Option(None, "--server", help="MT5 server address"),
):
    """Test credentials and store them as a new broker connection."""
    fields = _credentials(api_key, api_secret, user_id, password, totp_key, server)

    tested = connection_tester.test(broker_type or name, BrokerCredentials.model_validate(fields))
    if not tested.success:
        console.print(f"[red]Error: {tested.error}[/red]")
        raise typer.Exit(1)

    with get_database(ctx).session() as db:
        user_obj = require_user(db, user)
        result = CredentialStore(db, user_obj).store(
            BrokerCreate.model_validate({"name": name, "broker_type": broker_type, **fields})
        )

        if not result.success:
            console.print(f"[red]Error: {result.error}[/red]")
            raise typer.Exit(1)

        console.print(f"[green]Broker added:[/green] {result.data.broker_name} ({result.data.broker_type})")
        console.print(f"  ID: {result.data.id}")


@app.command("remove")
def remove_broker(
    ctx: typer.Context,
    broker_id: str = typer.Argument(..., help="Broker connection ID"),
    user: str = typer.Option(..., "--user", "-u", help="User email"),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation"),
):
    """Delete a broker connection and its stored credentials."""
    if not force:
        confirm = typer.confirm(f"Remove broker '{broker_id}' and its credentials?")
        if not confirm:
            console.print("[yellow]Cancelled.[/yellow]")
            raise typer.Exit(0)

    with get_database(ctx).session() as db:
        user_obj = require_user(db, user)
        result = CredentialStore(db, user_obj).delete(broker_id)

        if not result.success:
            console.print(f"[red]Error: {result.error}[/red]")
            raise typer.Exit(1)

        console.print("[green]Broker removed[/green]")

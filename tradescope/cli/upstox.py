"""Upstox connection CLI commands."""

import typer
from rich.console import Console
from rich.table import Table

from tradescope.cli.common import fmt_time, get_database, require_user
from tradescope.config import get_settings
from tradescope.core.brokers import TradeImporter, UpstoxTokenManager
from tradescope.core.brokers.upstox import encode_state, generate_auth_url, validate_config

console = Console()
app = typer.Typer()


@app.command("auth-url")
def auth_url(
    ctx: typer.Context,
    user: str = typer.Option(..., "--user", "-u", help="User email"),
):
    """Print the Upstox authorization URL for a user."""
    settings = get_settings()
    errors = validate_config(
        settings.upstox_client_id,
        settings.upstox_client_secret,
        settings.upstox_redirect_uri,
    )
    if errors:
        for error in errors:
            console.print(f"[red]{error}[/red]")
        console.print("\nSet UPSTOX_CLIENT_ID, UPSTOX_CLIENT_SECRET and UPSTOX_REDIRECT_URI in .env")
        raise typer.Exit(1)

    with get_database(ctx).session() as db:
        user_obj = require_user(db, user)
        url = generate_auth_url(
            settings.upstox_client_id,
            settings.upstox_redirect_uri,
            encode_state(user_obj.id),
        )

    console.print("Open this URL to authorize TradeScope:\n")
    console.print(url, soft_wrap=True)
    console.print("\n[dim]Then run: tradescope upstox exchange --user <email> <code>[/dim]")


@app.command("exchange")
def exchange(
    ctx: typer.Context,
    code: str = typer.Argument(..., help="Authorization code from the redirect"),
    user: str = typer.Option(..., "--user", "-u", help="User email"),
):
    """Exchange an authorization code for tokens."""
    with get_database(ctx).session() as db:
        user_obj = require_user(db, user)
        result = UpstoxTokenManager(db).exchange_code_for_token(user_obj.id, code)

        if not result.success:
            console.print(f"[red]Error: {result.error}[/red]")
            raise typer.Exit(1)

        console.print("[green]Upstox connected![/green]")
        console.print(f"  Token expires: {fmt_time(result.data['expires_at'])}")


@app.command("status")
def status(
    ctx: typer.Context,
    user: str = typer.Option(..., "--user", "-u", help="User email"),
):
    """Show the user's Upstox connection."""
    with get_database(ctx).session() as db:
        user_obj = require_user(db, user)
        info = UpstoxTokenManager(db).get_connection_status(user_obj.id)

    if info["is_connected"]:
        console.print("[green]Upstox:[/green] Connected")
    else:
        console.print("[yellow]Upstox:[/yellow] Not connected")
    console.print(f"  Token expires: {fmt_time(info['expires_at'], '-')}")
    console.print(f"  Last sync: {fmt_time(info['last_sync'])}")


@app.command("import")
def import_trades(
    ctx: typer.Context,
    user: str = typer.Option(..., "--user", "-u", help="User email"),
):
    """Import today's Upstox trade book."""
    with get_database(ctx).session() as db:
        user_obj = require_user(db, user)
        result = TradeImporter(db, UpstoxTokenManager(db)).import_trades_to_database(user_obj.id)

        if not result.success:
            console.print(f"[red]Error: {result.error}[/red]")
            raise typer.Exit(1)

        summary = result.data
        console.print(
            f"[green]Imported {summary.imported_count} of {summary.total_upstox_trades} trade(s)[/green]"
        )

        if summary.trades:
            table = Table(title="Imported Trades")
            table.add_column("Trade ID", style="dim")
            table.add_column("Symbol")
            table.add_column("Side")
            table.add_column("Qty", justify="right")
            table.add_column("Price", justify="right")
            table.add_column("Time")

            for trade in summary.trades:
                table.add_row(
                    trade.external_id,
                    trade.symbol,
                    trade.trade_type.upper(),
                    f"{trade.quantity:g}",
                    f"{trade.entry_price:,.2f}",
                    fmt_time(trade.opened_at, "-"),
                )

            console.print(table)


@app.command("disconnect")
def disconnect(
    ctx: typer.Context,
    user: str = typer.Option(..., "--user", "-u", help="User email"),
):
    """Remove stored Upstox tokens."""
    with get_database(ctx).session() as db:
        user_obj = require_user(db, user)
        result = UpstoxTokenManager(db).disconnect(user_obj.id)

        if not result.success:
            console.print(f"[red]Error: {result.error}[/red]")
            raise typer.Exit(1)

    console.print("[green]Upstox disconnected[/green]")

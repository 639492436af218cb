"""Main CLI entry point using Typer."""

import typer
from rich.console import Console

from tradescope.db.database import Database
from tradescope.config import PRODUCT_NAME, PRODUCT_TAGLINE, PRODUCT_VERSION
from tradescope.logging_setup import configure_logging

console = Console()
app = typer.Typer(
    name="tradescope",
    help=f"{PRODUCT_NAME}: {PRODUCT_TAGLINE}",
    add_completion=False,
)


@app.callback()
def main_callback(ctx: typer.Context):
    """Configure logging and open the database."""
    configure_logging()
    database = Database()
    database.create_all()
    ctx.obj = database
    ctx.call_on_close(database.dispose)


# Import and add subcommands
from tradescope.cli.users import app as users_app
from tradescope.cli.brokers import app as brokers_app
from tradescope.cli.upstox import app as upstox_app
from tradescope.cli.trades import app as trades_app
from tradescope.cli.sync import app as sync_app

app.add_typer(users_app, name="users", help="User management and authentication")
app.add_typer(brokers_app, name="brokers", help="Broker connections and credential checks")
app.add_typer(upstox_app, name="upstox", help="Upstox OAuth connection and trade import")
app.add_typer(trades_app, name="trades", help="Browse journaled trades")
app.add_typer(sync_app, name="sync", help="Import trades from connected brokers")


ASCII_BANNER = """
[bold #4F46E5]████████╗██████╗  █████╗ ██████╗ ███████╗
╚══██╔══╝██╔══██╗██╔══██╗██╔══██╗██╔════╝
   ██║   ██████╔╝███████║██║  ██║█████╗
   ██║   ██╔══██╗██╔══██║██║  ██║██╔══╝
   ██║   ██║  ██║██║  ██║██████╔╝███████╗
   ╚═╝   ╚═╝  ╚═╝╚═╝  ╚═╝╚═════╝ ╚══════╝[/]
[bold #14B8A6]███████╗ ██████╗ ██████╗ ██████╗ ███████╗
██╔════╝██╔════╝██╔═══██╗██╔══██╗██╔════╝
███████╗██║     ██║   ██║██████╔╝█████╗
╚════██║██║     ██║   ██║██╔═══╝ ██╔══╝
███████║╚██████╗╚██████╔╝██║     ███████╗
╚══════╝ ╚═════╝ ╚═════╝ ╚═╝     ╚══════╝[/]
"""


@app.command()
def version():
    """Show version information with ASCII banner."""
    console.print(ASCII_BANNER)
    console.print(f"[bold]Version:[/] {PRODUCT_VERSION}")
    console.print(f"[bold]Tagline:[/] {PRODUCT_TAGLINE}")


if __name__ == "__main__":
    app()

"""User management CLI commands."""

from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from tradescope.cli.common import fmt_time, get_database, require_user
from tradescope.core.auth import AuthService
from tradescope.db.models import User

app = typer.Typer()
console = Console()


@app.command("create")
def create(
    ctx: typer.Context,
    email: str = typer.Argument(..., help="User email address"),
    password: str = typer.Option(..., "--password", "-p", prompt=True, hide_input=True, help="User password"),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Display name"),
):
    """Create a new user."""
    with get_database(ctx).session() as db:
        auth = AuthService(db)

        try:
            user, token = auth.register(email=email, password=password, display_name=name)
        except ValueError as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(1)

        console.print("[green]User created successfully![/green]")
        console.print(f"  Email: {user.email}")
        console.print(f"  ID: {user.id}")
        console.print("\n[yellow]Access Token (for API):[/yellow]")
        console.print(f"  {token}")


@app.command("token")
def token(
    ctx: typer.Context,
    email: str = typer.Argument(..., help="User email address"),
):
    """Issue an access token for a user."""
    with get_database(ctx).session() as db:
        user = require_user(db, email)
        console.print(AuthService(db).issue_token(user))
        console.print("\n[dim]Use this token in Authorization header: Bearer <token>[/dim]")


@app.command("list")
def list_users(ctx: typer.Context):
    """List all users."""
    with get_database(ctx).session() as db:
        users = db.query(User).order_by(User.created_at).all()

        if not users:
            console.print("[yellow]No users found.[/yellow]")
            return

        table = Table(title="Users")
        table.add_column("ID", style="dim")
        table.add_column("Email")
        table.add_column("Name")
        table.add_column("Active", justify="center")
        table.add_column("Created")
        table.add_column("Last Login")

        for user in users:
            table.add_row(
                user.id[:8] + "...",
                user.email,
                user.display_name or "-",
                "[green]Yes[/green]" if user.is_active else "[red]No[/red]",
                fmt_time(user.created_at, "-"),
                fmt_time(user.last_login_at),
            )

        console.print(table)

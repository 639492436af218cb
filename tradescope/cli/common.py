"""Helpers shared by CLI command groups."""

import typer
from rich.console import Console
from sqlalchemy.orm import Session

from tradescope.db.database import Database
from tradescope.db.models import User

console = Console()


def get_database(ctx: typer.Context) -> Database:
    """Database opened by the root callback."""
    return ctx.obj


def require_user(db: Session, email: str) -> User:
    """Look up a user by email or exit with an error."""
    user = db.query(User).filter_by(email=email.lower()).first()
    if not user:
        console.print(f"[red]Error: User '{email}' not found[/red]")
        raise typer.Exit(1)
    return user


def fmt_time(value, default: str = "Never") -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value else default

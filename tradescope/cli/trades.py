"""Trade journal CLI commands."""

from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from tradescope.cli.common import fmt_time, get_database, require_user
from tradescope.core.trades import TradeFilters, TradeRepository, summarize_trades

console = Console()
app = typer.Typer()


def _pnl(value: Optional[float]) -> str:
    if value is None:
        return "-"
    color = "green" if value >= 0 else "red"
    return f"[{color}]{value:+,.2f}[/{color}]"


@app.command("list")
def list_trades(
    ctx: typer.Context,
    user: str = typer.Option(..., "--user", "-u", help="User email"),
    status: Optional[str] = typer.Option(None, "--status", "-s", help="open or closed"),
    symbol: Optional[str] = typer.Option(None, "--symbol", help="Symbol contains (case-insensitive)"),
    limit: int = typer.Option(50, "--limit", "-n", help="Max trades to show"),
):
    """List a user's trades, newest first."""
    with get_database(ctx).session() as db:
        user_obj = require_user(db, user)
        repo = TradeRepository(db)
        trades = repo.get_all(user_obj.id, TradeFilters(status=status, symbol=symbol, limit=limit))

        if not trades:
            console.print("[yellow]No trades found.[/yellow]")
            return

        table = Table(title="Trades")
        table.add_column("Opened")
        table.add_column("Symbol", style="bold")
        table.add_column("Side")
        table.add_column("Qty", justify="right")
        table.add_column("Entry", justify="right")
        table.add_column("Exit", justify="right")
        table.add_column("P&L", justify="right")
        table.add_column("Status")
        table.add_column("Source", style="dim")

        for trade in trades:
            table.add_row(
                fmt_time(trade.opened_at, "-"),
                trade.symbol,
                trade.trade_type.upper(),
                f"{trade.quantity:g}",
                f"{trade.entry_price:,.2f}",
                f"{trade.exit_price:,.2f}" if trade.exit_price else "-",
                _pnl(trade.pnl),
                trade.status,
                trade.process,
            )

        console.print(table)

        summary = summarize_trades(repo.get_in_range(user_obj.id))
        console.print(
            f"\nRealized P&L: {_pnl(summary.realized_pnl)}  "
            f"Win rate: {summary.win_rate:.1f}%  "
            f"Open: {summary.open_trades}  Closed: {summary.closed_trades}"
        )

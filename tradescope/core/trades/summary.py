"""Portfolio summary computed from journaled trades."""

from __future__ import annotations

from typing import Iterable

from tradescope.core.trades.models import PortfolioSummary
from tradescope.db.models import Trade


def summarize_trades(trades: Iterable[Trade]) -> PortfolioSummary:
    """Aggregate trade-level results into a portfolio summary.

    Win rate is the share of closed trades with positive P&L, as a
    percentage. Open exposure is quantity times entry price over open trades.
    """
    trades = list(trades)
    closed = [t for t in trades if t.status == "closed"]
    open_trades = [t for t in trades if t.status != "closed"]

    wins = [t.pnl for t in closed if t.pnl is not None and t.pnl > 0]
    losses = [t.pnl for t in closed if t.pnl is not None and t.pnl < 0]
    realized = sum(t.pnl or 0.0 for t in closed)

    return PortfolioSummary(
        total_trades=len(trades),
        open_trades=len(open_trades),
        closed_trades=len(closed),
        realized_pnl=round(realized, 2),
        win_rate=round(len(wins) / len(closed) * 100, 2) if closed else 0.0,
        winning_trades=len(wins),
        losing_trades=len(losses),
        average_win=round(sum(wins) / len(wins), 2) if wins else 0.0,
        average_loss=round(sum(losses) / len(losses), 2) if losses else 0.0,
        open_exposure=round(sum(t.quantity * t.entry_price for t in open_trades), 2),
    )

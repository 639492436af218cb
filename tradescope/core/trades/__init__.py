"""Trade journal: trades, strategies and summaries."""

from .models import (
    TradeCreate,
    TradeUpdate,
    TradeClose,
    TradeFilters,
    TradeResponse,
    StrategyResponse,
    PortfolioSummary,
)
from .repository import TradeRepository, StrategyRepository, calculate_pnl
from .summary import summarize_trades

__all__ = [
    "TradeCreate",
    "TradeUpdate",
    "TradeClose",
    "TradeFilters",
    "TradeResponse",
    "StrategyResponse",
    "PortfolioSummary",
    "TradeRepository",
    "StrategyRepository",
    "calculate_pnl",
    "summarize_trades",
]

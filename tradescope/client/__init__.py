"""HTTP client for the TradeScope API."""

from .trading_service import TradingService, UNAUTHORIZED

__all__ = ["TradingService", "UNAUTHORIZED"]

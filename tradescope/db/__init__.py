"""Database module."""

from .database import Database
from .models import Base, User, Broker, UpstoxToken, TradingAccount, Strategy, Trade

__all__ = [
    "Database",
    "Base",
    "User",
    "Broker",
    "UpstoxToken",
    "TradingAccount",
    "Strategy",
    "Trade",
]

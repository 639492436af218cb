"""Pydantic schemas for trade operations."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class TradeCreate(BaseModel):
    """Schema for journaling a new trade."""

    symbol: str = Field(..., min_length=1, max_length=50)
    trade_type: str = Field(..., description="buy or sell")
    quantity: float = Field(..., gt=0)
    entry_price: float = Field(..., gt=0)
    trade_date: datetime
    exit_price: Optional[float] = Field(None, gt=0)
    asset_class: Optional[str] = None
    strategy: Optional[str] = Field(None, description="Strategy name; created if new")
    notes: Optional[str] = None
    process: str = "manual"
    pnl: Optional[float] = None
    pnl_currency: str = "USD"
    broker_id: Optional[str] = None

    @field_validator("symbol")
    @classmethod
    def symbol_uppercase(cls, v: str) -> str:
        return v.upper().strip()

    @field_validator("trade_type")
    @classmethod
    def trade_type_valid(cls, v: str) -> str:
        v = v.lower().strip()
        if v not in ("buy", "sell"):
            raise ValueError("trade_type must be 'buy' or 'sell'")
        return v


class TradeUpdate(BaseModel):
    """Schema for updating a trade."""

    symbol: Optional[str] = Field(None, min_length=1, max_length=50)
    quantity: Optional[float] = Field(None, gt=0)
    entry_price: Optional[float] = Field(None, gt=0)
    exit_price: Optional[float] = Field(None, gt=0)
    asset_class: Optional[str] = None
    notes: Optional[str] = None
    fees: Optional[float] = Field(None, ge=0)


class TradeClose(BaseModel):
    """Schema for closing an open trade."""

    exit_price: float = Field(..., gt=0)
    closed_at: Optional[datetime] = None


class TradeFilters(BaseModel):
    """Query filters for listing trades."""

    status: Optional[str] = None
    symbol: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    limit: int = Field(50, ge=1, le=500)
    offset: int = Field(0, ge=0)


class TradeResponse(BaseModel):
    """Schema for trade response."""

    id: str
    user_id: str
    broker_id: Optional[str]
    strategy_id: Optional[str]
    symbol: str
    asset_class: Optional[str]
    trade_type: str
    position_side: str
    quantity: float
    entry_price: float
    exit_price: Optional[float]
    pnl: Optional[float]
    pnl_percentage: Optional[float]
    pnl_currency: str
    fees: float
    status: str
    process: str
    notes: Optional[str]
    opened_at: datetime
    closed_at: Optional[datetime]
    external_id: Optional[str]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class StrategyResponse(BaseModel):
    """Strategy with its trade count."""

    id: str
    name: str
    is_active: bool
    created_at: datetime
    trade_count: int = 0


class PortfolioSummary(BaseModel):
    """Journal summary with aggregated metrics."""

    total_trades: int
    open_trades: int
    closed_trades: int
    realized_pnl: float
    win_rate: float
    winning_trades: int
    losing_trades: int
    average_win: float
    average_loss: float
    open_exposure: float

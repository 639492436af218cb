"""Trade and strategy repositories for CRUD operations."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from tradescope.core.trades.models import TradeCreate, TradeFilters, TradeUpdate
from tradescope.db.models import Broker, Strategy, Trade, utcnow


def _escape_like_pattern(value: str) -> str:
    """Escape special characters in LIKE patterns."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def position_side_for(trade_type: str) -> str:
    """Buys open long positions, sells open short ones."""
    return "long" if trade_type == "buy" else "short"


def calculate_pnl(
    trade_type: str,
    quantity: float,
    entry_price: float,
    exit_price: float,
) -> Tuple[float, float]:
    """Compute realized P&L and P&L percentage for a round trip.

    Returns:
        Tuple of (pnl, pnl_percentage)
    """
    multiplier = 1 if trade_type == "buy" else -1
    pnl = multiplier * quantity * (exit_price - entry_price)
    pnl_pct = (exit_price - entry_price) / entry_price * 100 * multiplier
    return pnl, pnl_pct


class StrategyRepository:
    """Repository for Strategy operations."""

    def __init__(self, db: Session):
        self.db = db

    def get_or_create(self, user_id: str, name: str) -> Strategy:
        """Upsert a strategy by (user, name)."""
        strategy = self.db.query(Strategy).filter_by(user_id=user_id, name=name).first()
        if strategy:
            return strategy

        strategy = Strategy(user_id=user_id, name=name, is_active=True)
        self.db.add(strategy)
        self.db.flush()
        return strategy

    def get_all_with_counts(self, user_id: str) -> List[Tuple[Strategy, int]]:
        """List strategies with the number of trades tagged with each."""
        return (
            self.db.query(Strategy, func.count(Trade.id))
            .outerjoin(Trade, Trade.strategy_id == Strategy.id)
            .filter(Strategy.user_id == user_id)
            .group_by(Strategy.id)
            .order_by(Strategy.name)
            .all()
        )


class TradeRepository:
    """Repository for Trade CRUD operations, always scoped to one user."""

    def __init__(self, db: Session):
        """Initialize repository with database session."""
        self.db = db
        self.strategies = StrategyRepository(db)

    def get_all(self, user_id: str, filters: Optional[TradeFilters] = None) -> List[Trade]:
        """List trades, newest first.

        Args:
            user_id: Owner
            filters: Optional status/symbol/date filters and paging

        Returns:
            List of trades
        """
        filters = filters or TradeFilters()
        query = self.db.query(Trade).filter(Trade.user_id == user_id)

        if filters.status:
            query = query.filter(Trade.status == filters.status)
        if filters.symbol:
            pattern = f"%{_escape_like_pattern(filters.symbol)}%"
            query = query.filter(Trade.symbol.ilike(pattern, escape="\\"))
        if filters.date_from:
            query = query.filter(Trade.opened_at >= filters.date_from)
        if filters.date_to:
            query = query.filter(Trade.opened_at <= filters.date_to)

        return (
            query.order_by(Trade.opened_at.desc())
            .offset(filters.offset)
            .limit(filters.limit)
            .all()
        )

    def get_in_range(
        self,
        user_id: str,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> List[Trade]:
        """Trades in an optional window, oldest first (analytics feed)."""
        query = self.db.query(Trade).filter(Trade.user_id == user_id)
        if date_from:
            query = query.filter(Trade.opened_at >= date_from)
        if date_to:
            query = query.filter(Trade.opened_at <= date_to)
        return query.order_by(Trade.opened_at.asc()).all()

    def get_by_id(self, trade_id: str, user_id: str) -> Optional[Trade]:
        """Get a trade by ID, only if owned by the user."""
        return self.db.query(Trade).filter_by(id=trade_id, user_id=user_id).first()

    def _owns_broker(self, user_id: str, broker_id: str) -> bool:
        return self.db.query(Broker.id).filter_by(id=broker_id, user_id=user_id).first() is not None

    def create(self, user_id: str, payload: TradeCreate) -> Trade:
        """Journal a new trade.

        A trade created with an exit price is closed immediately and its P&L
        computed; a named strategy is created if it doesn't exist yet.

        Raises:
            ValueError: If broker_id names a broker the user does not own
        """
        if payload.broker_id and not self._owns_broker(user_id, payload.broker_id):
            raise ValueError("Broker not found")

        strategy_id = None
        if payload.strategy:
            strategy_id = self.strategies.get_or_create(user_id, payload.strategy).id

        pnl = payload.pnl
        pnl_pct = None
        status = "open"
        closed_at = None

        if payload.exit_price:
            pnl, pnl_pct = calculate_pnl(
                payload.trade_type,
                payload.quantity,
                payload.entry_price,
                payload.exit_price,
            )
            status = "closed"
            closed_at = payload.trade_date

        trade = Trade(
            user_id=user_id,
            broker_id=payload.broker_id,
            strategy_id=strategy_id,
            symbol=payload.symbol,
            asset_class=payload.asset_class,
            trade_type=payload.trade_type,
            position_side=position_side_for(payload.trade_type),
            quantity=payload.quantity,
            entry_price=payload.entry_price,
            exit_price=payload.exit_price,
            pnl=pnl,
            pnl_percentage=pnl_pct,
            pnl_currency=payload.pnl_currency or "USD",
            fees=0.0,
            status=status,
            process=payload.process or "manual",
            notes=payload.notes,
            opened_at=payload.trade_date,
            closed_at=closed_at,
        )
        self.db.add(trade)
        self.db.flush()
        return trade

    def update(self, trade: Trade, payload: TradeUpdate) -> Trade:
        """Apply a partial update, recomputing P&L for closed trades."""
        for field_name, value in payload.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(trade, field_name, value.upper() if field_name == "symbol" else value)

        if trade.exit_price:
            trade.pnl, trade.pnl_percentage = calculate_pnl(
                trade.trade_type, trade.quantity, trade.entry_price, trade.exit_price
            )
            if trade.status != "closed":
                trade.status = "closed"
                trade.closed_at = trade.closed_at or utcnow()

        self.db.flush()
        return trade

    def close(self, trade: Trade, exit_price: float, closed_at: Optional[datetime] = None) -> Trade:
        """Close an open trade at the given exit price.

        Raises:
            ValueError: If the trade is already closed or the price is invalid
        """
        if trade.status == "closed":
            raise ValueError("Trade is already closed")
        if exit_price <= 0:
            raise ValueError(f"Exit price must be positive, got {exit_price}")

        trade.exit_price = exit_price
        trade.pnl, trade.pnl_percentage = calculate_pnl(
            trade.trade_type, trade.quantity, trade.entry_price, exit_price
        )
        trade.status = "closed"
        trade.closed_at = closed_at or utcnow()
        self.db.flush()
        return trade

    def delete(self, trade: Trade) -> None:
        """Delete a trade."""
        self.db.delete(trade)
        self.db.flush()

    def upsert_by_external_id(
        self,
        user_id: str,
        broker_id: str,
        external_id: str,
        fields: dict,
    ) -> Trade:
        """Create or update an imported trade keyed by the broker's trade id.

        Args:
            user_id: Owner
            broker_id: Broker the trade came from
            external_id: Broker-assigned trade id
            fields: Mapped Trade column values

        Returns:
            The created or updated trade
        """
        trade = (
            self.db.query(Trade)
            .filter_by(user_id=user_id, broker_id=broker_id, external_id=external_id)
            .first()
        )

        if trade:
            for name, value in fields.items():
                setattr(trade, name, value)
        else:
            trade = Trade(
                user_id=user_id,
                broker_id=broker_id,
                external_id=external_id,
                **fields,
            )
            self.db.add(trade)

        self.db.flush()
        return trade

"""Trade journal API routes."""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from tradescope.api.deps import get_current_user, get_db
from tradescope.core.trades import (
    TradeClose,
    TradeCreate,
    TradeFilters,
    TradeRepository,
    TradeResponse,
    TradeUpdate,
)
from tradescope.db.models import Trade, User

router = APIRouter(prefix="/trades", tags=["trades"])


def _get_owned_trade(repo: TradeRepository, trade_id: str, user: User) -> Trade:
    trade = repo.get_by_id(trade_id, user.id)
    if not trade:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Trade not found",
        )
    return trade


@router.get("", response_model=List[TradeResponse])
def list_trades(
    status_filter: Optional[str] = Query(None, alias="status"),
    symbol: Optional[str] = Query(None),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """List the user's trades, newest first."""
    filters = TradeFilters(
        status=status_filter,
        symbol=symbol,
        date_from=date_from,
        date_to=date_to,
        limit=limit,
        offset=offset,
    )
    return TradeRepository(db).get_all(user.id, filters)


@router.post("", response_model=TradeResponse, status_code=status.HTTP_201_CREATED)
def create_trade(
    payload: TradeCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Journal a trade; supplying an exit price closes it immediately."""
    try:
        trade = TradeRepository(db).create(user.id, payload)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )
    db.commit()
    return trade


@router.put("/{trade_id}", response_model=TradeResponse)
def update_trade(
    trade_id: str,
    payload: TradeUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Update a trade."""
    repo = TradeRepository(db)
    trade = repo.update(_get_owned_trade(repo, trade_id, user), payload)
    db.commit()
    return trade


@router.delete("/{trade_id}")
def delete_trade(
    trade_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Delete a trade."""
    repo = TradeRepository(db)
    repo.delete(_get_owned_trade(repo, trade_id, user))
    db.commit()
    return {"message": "Trade deleted successfully"}


@router.post("/close/{trade_id}", response_model=TradeResponse)
def close_trade(
    trade_id: str,
    payload: TradeClose,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Close an open trade at an exit price."""
    repo = TradeRepository(db)
    trade = _get_owned_trade(repo, trade_id, user)

    try:
        repo.close(trade, payload.exit_price, payload.closed_at)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )

    db.commit()
    return trade

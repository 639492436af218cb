"""Analytics data API routes."""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from tradescope.api.deps import get_current_user, get_db
from tradescope.core.trades import TradeRepository, TradeResponse
from tradescope.db.models import User

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.get("/data", response_model=List[TradeResponse])
def get_analytics_data(
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Trades in an optional date window, oldest first."""
    return TradeRepository(db).get_in_range(user.id, date_from, date_to)

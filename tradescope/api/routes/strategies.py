"""Strategy API routes."""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from tradescope.api.deps import get_current_user, get_db
from tradescope.core.trades import StrategyRepository, StrategyResponse
from tradescope.db.models import User

router = APIRouter(prefix="/strategies", tags=["strategies"])


@router.get("", response_model=List[StrategyResponse])
def list_strategies(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """List the user's strategies with trade counts."""
    return [
        StrategyResponse(
            id=strategy.id,
            name=strategy.name,
            is_active=strategy.is_active,
            created_at=strategy.created_at,
            trade_count=count,
        )
        for strategy, count in StrategyRepository(db).get_all_with_counts(user.id)
    ]

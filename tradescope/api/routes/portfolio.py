"""Portfolio summary API routes."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from tradescope.api.deps import get_current_user, get_db
from tradescope.core.trades import PortfolioSummary, TradeRepository, summarize_trades
from tradescope.db.models import User

router = APIRouter(prefix="/portfolio", tags=["portfolio"])


@router.get("/summary", response_model=PortfolioSummary)
def get_portfolio_summary(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Aggregate metrics over all of the user's trades."""
    return summarize_trades(TradeRepository(db).get_in_range(user.id))

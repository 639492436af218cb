"""Trading account API routes."""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session

from tradescope.api.deps import get_current_user, get_db
from tradescope.db.models import TradingAccount, User

router = APIRouter(prefix="/trading", tags=["trading"])


class TradingAccountResponse(BaseModel):
    """Trading account response."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    broker_id: Optional[str]
    account_number: Optional[str]
    name: Optional[str]
    created_at: datetime


@router.get("/accounts", response_model=List[TradingAccountResponse])
def list_trading_accounts(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """List the user's trading accounts."""
    return (
        db.query(TradingAccount)
        .filter_by(user_id=user.id)
        .order_by(TradingAccount.created_at.desc())
        .all()
    )

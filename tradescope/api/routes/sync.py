"""Broker sync API routes."""

from dataclasses import asdict

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from tradescope.api.deps import get_current_user, get_db
from tradescope.core.brokers import get_broker_sync_service
from tradescope.db.models import User

router = APIRouter(prefix="/sync", tags=["sync"])


@router.post("/brokers")
def sync_brokers(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Import trades from every connected broker that supports it."""
    results = get_broker_sync_service(db).sync_all(user)
    db.commit()

    return {
        "message": "Broker data synced",
        "imported_count": sum(r.imported_count for r in results),
        "results": [asdict(r) for r in results],
    }

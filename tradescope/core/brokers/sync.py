"""Broker trade sync service."""

from __future__ import annotations

import logging
from typing import List

from sqlalchemy.orm import Session

from tradescope.core.brokers.connection import get_provider
from tradescope.core.brokers.models import SyncResult
from tradescope.core.brokers.repository import BrokerRepository
from tradescope.db.models import Broker, User, utcnow

logger = logging.getLogger(__name__)


class BrokerSyncService:
    """Service for pulling trades from a user's connected brokers."""

    def __init__(self, db: Session):
        self.db = db
        self.repo = BrokerRepository(db)

    def get_syncable_brokers(self, user: User) -> List[Broker]:
        """Active brokers whose provider can import trades."""
        brokers = []
        for broker in self.repo.get_active(user.id):
            provider = get_provider(broker.broker_type)
            if provider and provider.supports_import:
                brokers.append(broker)
        return brokers

    def _failure(self, broker: Broker, error: str) -> SyncResult:
        return SyncResult(
            broker_id=broker.id,
            broker_name=broker.broker_name,
            success=False,
            imported_count=0,
            total_trades=0,
            error=error,
            synced_at=utcnow(),
        )

    def sync_broker(self, broker: Broker) -> SyncResult:
        """Import trades for one broker connection.

        Each broker imports inside its own savepoint, so an unexpected error
        rolls back only that broker's work and is reported as a failed result.
        """
        provider = get_provider(broker.broker_type)
        if not provider or not provider.supports_import:
            return self._failure(broker, f"Trade import not supported for {broker.broker_name}")

        try:
            with self.db.begin_nested():
                result = provider.import_trades(self.db, broker.user_id)
        except Exception as e:
            logger.exception(f"Sync crashed for broker {broker.id}")
            return self._failure(broker, str(e) or type(e).__name__)

        if not result.success:
            logger.error(f"Sync failed for broker {broker.id}: {result.error}")
            return self._failure(broker, result.error)

        return SyncResult(
            broker_id=broker.id,
            broker_name=broker.broker_name,
            success=True,
            imported_count=result.data.imported_count,
            total_trades=result.data.total_upstox_trades,
            error=None,
            synced_at=utcnow(),
        )

    def sync_all(self, user: User) -> List[SyncResult]:
        """Sync every importing broker for a user.

        Returns:
            List of SyncResults, one per broker
        """
        return [self.sync_broker(broker) for broker in self.get_syncable_brokers(user)]

    def sync_all_users(self) -> List[SyncResult]:
        """Sync every active user (scheduler entry point)."""
        results = []
        users = self.db.query(User).filter(User.is_active == True).all()  # noqa: E712
        for user in users:
            results.extend(self.sync_all(user))
        return results


def get_broker_sync_service(db: Session) -> BrokerSyncService:
    """Factory function for broker sync service."""
    return BrokerSyncService(db)

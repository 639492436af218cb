"""Broker repository for CRUD operations."""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy.orm import Session

from tradescope.core.brokers.models import BrokerStatus, BrokerType
from tradescope.db.models import Broker


class BrokerRepository:
    """Repository for Broker CRUD operations, always scoped to one user."""

    def __init__(self, db: Session):
        """Initialize repository with database session."""
        self.db = db

    def get_all(self, user_id: str) -> List[Broker]:
        """Get all broker connections for a user."""
        return (
            self.db.query(Broker)
            .filter_by(user_id=user_id)
            .order_by(Broker.created_at.desc())
            .all()
        )

    def get_active(self, user_id: str) -> List[Broker]:
        """Get active broker connections for a user."""
        return (
            self.db.query(Broker)
            .filter(
                Broker.user_id == user_id,
                Broker.is_active == True,  # noqa: E712
            )
            .all()
        )

    def get_by_id(self, broker_id: str, user_id: str) -> Optional[Broker]:
        """Get a broker by ID, only if owned by the user."""
        return self.db.query(Broker).filter_by(id=broker_id, user_id=user_id).first()

    def get_by_type(self, user_id: str, broker_type: BrokerType) -> Optional[Broker]:
        """Get the user's connection for a broker type, if any."""
        return (
            self.db.query(Broker)
            .filter_by(user_id=user_id, broker_type=broker_type.value)
            .order_by(Broker.created_at.desc())
            .first()
        )

    def create(
        self,
        user_id: str,
        broker_name: str,
        broker_type: BrokerType,
        credentials: Optional[str] = None,
    ) -> Broker:
        """Create a new active broker connection."""
        broker = Broker(
            user_id=user_id,
            broker_name=broker_name,
            broker_type=broker_type.value,
            credentials=credentials,
            status=BrokerStatus.ACTIVE.value,
            is_active=True,
        )
        self.db.add(broker)
        self.db.flush()
        return broker

    def get_or_create(self, user_id: str, broker_type: BrokerType) -> Broker:
        """Locate the user's broker of this type or create one."""
        broker = self.get_by_type(user_id, broker_type)
        if broker:
            return broker
        return self.create(user_id, broker_type.display_name, broker_type)

    def set_status(self, broker: Broker, status: BrokerStatus) -> Broker:
        """Transition a broker between active and inactive."""
        broker.status = status.value
        broker.is_active = status == BrokerStatus.ACTIVE
        self.db.flush()
        return broker

    def delete(self, broker: Broker) -> None:
        """Delete a broker connection."""
        self.db.delete(broker)
        self.db.flush()

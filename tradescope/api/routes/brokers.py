"""Broker connection API routes."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from tradescope.api.deps import get_current_user, get_db
from tradescope.api.envelope import envelope
from tradescope.core.brokers import (
    BrokerCreate,
    BrokerCredentials,
    CredentialStore,
    UpstoxTokenManager,
    connection_tester,
    get_provider,
)
from tradescope.core.result import ServiceResult
from tradescope.db.models import Broker, User

router = APIRouter(prefix="/brokers", tags=["brokers"])


# Request/Response Models

class BrokerResponse(BaseModel):
    """Broker connection (credentials are never returned)."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    broker_name: str
    broker_type: str
    status: str
    is_active: bool
    last_synced_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime


class BrokerStatusResponse(BaseModel):
    """Connection status of one broker."""

    id: str
    broker_name: str
    broker_type: str
    status: str
    is_active: bool
    supports_oauth: bool
    supports_import: bool
    last_synced_at: Optional[datetime]
    token_expires_at: Optional[datetime] = None


class ConnectionTestRequest(BrokerCredentials):
    """Credentials to test against a broker type."""

    broker_type: str = Field(..., validation_alias=AliasChoices("broker_type", "brokerType"))


class StatusUpdateRequest(BaseModel):
    """Request to activate or deactivate a broker."""

    status: str


def _broker(broker: Broker) -> dict:
    return BrokerResponse.model_validate(broker).model_dump()


def _brokers(brokers: List[Broker]) -> list:
    return [_broker(b) for b in brokers]


# Routes

@router.get("")
def list_brokers(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """List the user's broker connections."""
    return envelope(CredentialStore(db, user).list(), _brokers)


@router.post("")
def add_broker(
    payload: BrokerCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Test the submitted credentials and store them as a new broker."""
    broker_type = payload.broker_type or payload.name
    tested = connection_tester.test(broker_type, payload.credentials())
    if not tested.success:
        return envelope(tested)

    result = CredentialStore(db, user).store(payload)
    if result.success:
        db.commit()
    return envelope(result, _broker, success_status=status.HTTP_201_CREATED)


@router.get("/status")
def get_broker_status(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Connection status for each of the user's brokers."""
    listed = CredentialStore(db, user).list()
    if not listed.success:
        return envelope(listed)

    upstox_status = None
    statuses = []
    for broker in listed.data:
        provider = get_provider(broker.broker_type)
        token_expires_at = None
        if provider and provider.supports_oauth:
            if upstox_status is None:
                upstox_status = UpstoxTokenManager(db).get_connection_status(user.id)
            token_expires_at = upstox_status["expires_at"]
        statuses.append(
            BrokerStatusResponse(
                id=broker.id,
                broker_name=broker.broker_name,
                broker_type=broker.broker_type,
                status=broker.status,
                is_active=broker.is_active,
                supports_oauth=bool(provider and provider.supports_oauth),
                supports_import=bool(provider and provider.supports_import),
                last_synced_at=broker.last_synced_at,
                token_expires_at=token_expires_at,
            ).model_dump()
        )

    return envelope(ServiceResult.ok(statuses))


@router.post("/test")
def test_connection(
    payload: ConnectionTestRequest,
    user: User = Depends(get_current_user),
):
    """Validate credentials for a broker type without storing them."""
    credentials = BrokerCredentials.model_validate(
        payload.model_dump(include=set(BrokerCredentials.model_fields))
    )
    return envelope(connection_tester.test(payload.broker_type, credentials))


@router.patch("/{broker_id}/status")
def update_broker_status(
    broker_id: str,
    payload: StatusUpdateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Activate or deactivate a broker connection."""
    result = CredentialStore(db, user).set_status(broker_id, payload.status)
    if result.success:
        db.commit()
    return envelope(result, _broker)


@router.put("/{broker_id}/credentials")
def update_broker_credentials(
    broker_id: str,
    payload: BrokerCredentials,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Replace a broker's stored credentials."""
    result = CredentialStore(db, user).update(broker_id, payload)
    if result.success:
        db.commit()
    return envelope(result, _broker)


@router.delete("/{broker_id}")
def delete_broker(
    broker_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Delete a broker connection and its credentials."""
    result = CredentialStore(db, user).delete(broker_id)
    if result.success:
        db.commit()
    return envelope(result)

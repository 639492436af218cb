"""Upstox OAuth and trade import API routes."""

from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import RedirectResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from tradescope.api.deps import get_current_user, get_db
from tradescope.api.envelope import envelope
from tradescope.config import get_settings
from tradescope.core.brokers import ImportResult, TradeImporter, UpstoxTokenManager
from tradescope.core.brokers.upstox import OAuthStage, decode_state, encode_state, generate_auth_url
from tradescope.core.result import ServiceResult
from tradescope.core.trades import TradeResponse
from tradescope.db.models import User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/upstox", tags=["upstox"])


class ExchangeRequest(BaseModel):
    """Authorization code obtained from the Upstox redirect."""

    code: str
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    redirect_uri: Optional[str] = None


def _import_result(result: ImportResult) -> dict:
    return {
        "imported_count": result.imported_count,
        "total_upstox_trades": result.total_upstox_trades,
        "trades": [TradeResponse.model_validate(t).model_dump() for t in result.trades],
    }


def _frontend_redirect(**params) -> RedirectResponse:
    url = f"{get_settings().frontend_url}/broker-integration?{urlencode(params)}"
    return RedirectResponse(url=url, status_code=status.HTTP_302_FOUND)


@router.get("/status")
def get_upstox_status(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Whether the user has a live Upstox connection."""
    return envelope(ServiceResult.ok(UpstoxTokenManager(db).get_connection_status(user.id)))


@router.get("/auth-url")
def get_auth_url(
    user: User = Depends(get_current_user),
):
    """Build the Upstox authorization URL for the current user."""
    settings = get_settings()
    if not settings.upstox_client_id:
        logger.error("UPSTOX_CLIENT_ID is not set")
        return envelope(
            ServiceResult.fail("Upstox client ID is not configured"),
            failure_status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    state = encode_state(user.id)
    url = generate_auth_url(
        settings.upstox_client_id, settings.upstox_redirect_uri, state
    )
    return envelope(ServiceResult.ok({"auth_url": url, "state": state, "stage": OAuthStage.AUTH.value}))


@router.get("/callback")
def oauth_callback(
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    """Redirect target registered with Upstox.

    Exchanges the code for the user named in ``state`` and sends the browser
    back to the frontend with ``upstox_success`` or ``upstox_error``.
    """
    if error:
        logger.warning(f"Upstox authorization denied: {error}")
        return _frontend_redirect(upstox_error=error)

    user_id = decode_state(state)
    if not code or not user_id:
        return _frontend_redirect(upstox_error="Missing authorization code or state")

    manager = UpstoxTokenManager(db)
    result = manager.exchange_code_for_token(user_id, code)
    if not result.success:
        return _frontend_redirect(upstox_error=result.error)

    db.commit()

    profile = manager.get_profile(user_id)
    if profile.success and isinstance(profile.data, dict):
        logger.info(f"Upstox account {profile.data.get('user_id')} linked to user {user_id}")
    else:
        logger.warning(f"Could not fetch Upstox profile for user {user_id}: {profile.error}")
    return _frontend_redirect(upstox_success="true")


@router.post("/exchange")
def exchange_code(
    payload: ExchangeRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Exchange an authorization code for tokens."""
    result = UpstoxTokenManager(db).exchange_code_for_token(
        user.id,
        payload.code,
        client_id=payload.client_id,
        client_secret=payload.client_secret,
        redirect_uri=payload.redirect_uri,
    )
    if result.success:
        db.commit()
        # Tokens stay server-side
        result = ServiceResult.ok(
            {"expires_at": result.data["expires_at"], "stage": OAuthStage.after(result).value}
        )
    return envelope(result)


@router.get("/profile")
def get_profile(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """The connected Upstox account's profile."""
    result = UpstoxTokenManager(db).get_profile(user.id)
    if result.success:
        db.commit()
    return envelope(result, failure_status=status.HTTP_502_BAD_GATEWAY)


@router.get("/holdings")
def get_holdings(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Long-term holdings in the connected Upstox account."""
    result = UpstoxTokenManager(db).get_holdings(user.id)
    if result.success:
        db.commit()
    return envelope(result, failure_status=status.HTTP_502_BAD_GATEWAY)


@router.post("/import-trades")
def import_trades(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Import today's Upstox trade book into the journal."""
    result = TradeImporter(db, UpstoxTokenManager(db)).import_trades_to_database(user.id)
    if result.success:
        db.commit()
    return envelope(result, _import_result, failure_status=status.HTTP_502_BAD_GATEWAY)


@router.post("/disconnect")
def disconnect(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Remove the user's Upstox tokens and deactivate the broker."""
    result = UpstoxTokenManager(db).disconnect(user.id)
    if result.success:
        db.commit()
    return envelope(result, failure_status=status.HTTP_500_INTERNAL_SERVER_ERROR)

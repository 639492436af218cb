"""Upstox OAuth integration.

Flow:
1. config  - collect client id, secret and redirect URI (``validate_config``)
2. auth    - send the user to ``generate_auth_url``; Upstox redirects back
             with ``?code=...&state=...`` on a URI carrying ``broker=upstox``
3. success - ``exchange_code_for_token`` stores the token set for the user

Any failure returns the flow to ``config``. Network and storage failures are
reported as ``ServiceResult.fail``; nothing is retried.
"""

from __future__ import annotations

import logging
import threading
import weakref
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import List, Optional
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

import requests
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tradescope.config import Settings, get_settings
from tradescope.core.auth.security import create_access_token, decode_access_token
from tradescope.core.brokers.base import BrokerProvider
from tradescope.core.brokers.models import BrokerCredentials, BrokerStatus, BrokerType, TokenSet
from tradescope.core.brokers.repository import BrokerRepository
from tradescope.core.result import ServiceResult
from tradescope.db.models import UpstoxToken, utcnow

logger = logging.getLogger(__name__)

AUTHORIZATION_URL = "https://api.upstox.com/v2/login/authorization/dialog"
OAUTH_SCOPE = "NSE|BSE|MCX"
REQUEST_TIMEOUT_SECONDS = 15

PROFILE_PATH = "/user/profile"
HOLDINGS_PATH = "/portfolio/long-term-holdings"
TRADE_BOOK_PATH = "/order/trades/get-trades-for-day"

FORM_HEADERS = {
    "Content-Type": "application/x-www-form-urlencoded",
    "Accept": "application/json",
}

# Signed state is only good for one trip through the consent screen
STATE_PURPOSE = "upstox_oauth"
STATE_TTL = timedelta(minutes=10)

TOKEN_EXPIRED_REFRESH_FAILED = "Token expired and refresh failed"
NO_TOKENS = "No Upstox tokens found"
STORE_FAILED = "Failed to store Upstox tokens"


class OAuthStage(str, Enum):
    """Stages of the Upstox connection flow."""

    CONFIG = "config"
    AUTH = "auth"
    SUCCESS = "success"

    @classmethod
    def after(cls, result: ServiceResult) -> "OAuthStage":
        """Where the flow stands once an exchange has finished."""
        return cls.SUCCESS if result.success else cls.CONFIG


@dataclass
class OAuthCallback:
    """Parameters consumed from an OAuth redirect."""

    code: Optional[str]
    state: Optional[str]
    broker: Optional[str]
    error: Optional[str]
    cleaned_url: str


def generate_auth_url(client_id: str, redirect_uri: str, state: str) -> str:
    """Build the Upstox authorization dialog URL.

    Args:
        client_id: Upstox app API key
        redirect_uri: Registered redirect URI (should carry ``broker=upstox``)
        state: Anti-replay value echoed back on the redirect

    Returns:
        Fully encoded authorization URL
    """
    query = urlencode(
        {
            "response_type": "code",
            "client_id": client_id,
            "redirect_uri": redirect_uri,
            "state": state,
            "scope": OAUTH_SCOPE,
        }
    )
    return f"{AUTHORIZATION_URL}?{query}"


def validate_config(client_id: str, client_secret: str, redirect_uri: str) -> List[str]:
    """Check the config stage inputs.

    Returns:
        List of validation errors (empty if valid)
    """
    errors = []

    if not client_id or len(client_id) < 10:
        errors.append("Client ID must be at least 10 characters long")

    if not client_secret or len(client_secret) < 20:
        errors.append("Client Secret must be at least 20 characters long")

    parsed = urlparse(redirect_uri or "")
    if not parsed.scheme or not parsed.netloc:
        errors.append("Invalid redirect URI format")
    elif not dict(parse_qsl(parsed.query)).get("broker"):
        errors.append("Redirect URI must include broker=upstox parameter")

    return errors


def parse_oauth_callback(url: str) -> OAuthCallback:
    """Consume ``code``, ``state``, ``broker`` and ``error`` from a redirect URL.

    The returned ``cleaned_url`` has those parameters stripped so the code
    cannot be replayed from the address bar.
    """
    parsed = urlparse(url)
    params = parse_qsl(parsed.query, keep_blank_values=True)
    consumed = {"code", "state", "broker", "error"}
    values = {key: value for key, value in params if key in consumed}
    remaining = [(key, value) for key, value in params if key not in consumed]

    return OAuthCallback(
        code=values.get("code") or None,
        state=values.get("state") or None,
        broker=values.get("broker") or None,
        error=values.get("error") or None,
        cleaned_url=urlunparse(parsed._replace(query=urlencode(remaining))),
    )


def encode_state(user_id: str) -> str:
    """Sign the user id into a short-lived OAuth ``state`` value."""
    return create_access_token(
        data={"user_id": user_id, "purpose": STATE_PURPOSE},
        expires_delta=STATE_TTL,
    )


def decode_state(state: Optional[str]) -> Optional[str]:
    """Recover the user id from a signed ``state`` value.

    Returns None for missing, forged, expired or non-state tokens.
    """
    if not state:
        return None

    payload = decode_access_token(state)
    if not payload or payload.get("purpose") != STATE_PURPOSE:
        logger.warning("Rejected invalid OAuth state parameter")
        return None
    return payload.get("user_id")


def extract_error_message(response: requests.Response, fallback: str) -> str:
    """Pull Upstox's error text out of a failed response."""
    try:
        body = response.json()
    except ValueError:
        return fallback

    if not isinstance(body, dict):
        return fallback

    errors = body.get("errors")
    if isinstance(errors, list) and errors and isinstance(errors[0], dict):
        message = errors[0].get("message")
        if message:
            return message

    for key in ("error_description", "message", "error"):
        value = body.get(key)
        if isinstance(value, str) and value:
            return value

    return fallback


def upstox_get(
    http: requests.Session,
    url: str,
    access_token: str,
    fallback: str,
) -> ServiceResult:
    """GET an Upstox endpoint with a bearer token and unwrap its ``data``."""
    try:
        response = http.get(
            url,
            headers={
                "Authorization": f"Bearer {access_token}",
                "Accept": "application/json",
            },
            timeout=REQUEST_TIMEOUT_SECONDS,
        )
    except requests.RequestException as e:
        logger.error(f"Upstox request to {url} failed: {e}")
        return ServiceResult.fail(str(e))

    if not response.ok:
        return ServiceResult.fail(extract_error_message(response, fallback))

    try:
        body = response.json()
    except ValueError:
        return ServiceResult.fail(fallback)

    if not isinstance(body, dict):
        logger.error(f"Unexpected Upstox response from {url}: {type(body).__name__}")
        return ServiceResult.fail(fallback)

    return ServiceResult.ok(body.get("data"))


class _RefreshFlight:
    """A user's refresh guard plus the token set its last refresh produced.

    Waiters that queued behind a refresh adopt its result instead of posting
    the same refresh token again; their sessions cannot see the new row until
    the refreshing session commits.
    """

    def __init__(self):
        self.lock = threading.Lock()
        self.replaced_token: Optional[str] = None
        self.tokens: Optional[TokenSet] = None

    def result_for(self, access_token: str) -> Optional[TokenSet]:
        if self.tokens and self.replaced_token == access_token and not self.tokens.is_expired(utcnow()):
            return self.tokens
        return None


# Entries disappear once no caller or open session holds the flight
_refresh_flights: "weakref.WeakValueDictionary[str, _RefreshFlight]" = weakref.WeakValueDictionary()
_refresh_flights_guard = threading.Lock()

SESSION_FLIGHTS_KEY = "upstox_refresh_flights"


def _refresh_flight(user_id: str) -> _RefreshFlight:
    with _refresh_flights_guard:
        flight = _refresh_flights.get(user_id)
        if flight is None:
            flight = _RefreshFlight()
            _refresh_flights[user_id] = flight
        return flight


def _token_set(row: UpstoxToken) -> TokenSet:
    return TokenSet(
        access_token=row.access_token,
        refresh_token=row.refresh_token,
        expires_at=row.expires_at,
        updated_at=row.updated_at,
    )


class UpstoxTokenManager:
    """Exchanges, stores and refreshes Upstox OAuth tokens per user."""

    def __init__(
        self,
        db: Session,
        http: Optional[requests.Session] = None,
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.http = http or requests.Session()
        self.settings = settings or get_settings()
        self.brokers = BrokerRepository(db)

    @property
    def token_url(self) -> str:
        return f"{self.settings.upstox_api_url}/login/authorization/token"

    def _expiry(self, body: dict):
        ttl = body.get("expires_in") or self.settings.upstox_token_ttl_seconds
        return utcnow() + timedelta(seconds=int(ttl))

    def _load(self, user_id: str) -> Optional[UpstoxToken]:
        return (
            self.db.query(UpstoxToken)
            .populate_existing()
            .filter_by(user_id=user_id)
            .first()
        )

    def _post_token_request(self, payload: dict, fallback: str) -> ServiceResult:
        """POST a grant to the token endpoint and return the parsed body."""
        try:
            response = self.http.post(
                self.token_url,
                data=payload,
                headers=FORM_HEADERS,
                timeout=REQUEST_TIMEOUT_SECONDS,
            )
        except requests.RequestException as e:
            logger.error(f"Upstox token request failed: {e}")
            return ServiceResult.fail(str(e))

        if not response.ok:
            message = extract_error_message(response, fallback)
            logger.error(f"Upstox token endpoint returned {response.status_code}: {message}")
            return ServiceResult.fail(message)

        try:
            body = response.json()
        except ValueError:
            return ServiceResult.fail(fallback)

        if not isinstance(body, dict) or not body.get("access_token"):
            return ServiceResult.fail("No access token received from Upstox")

        return ServiceResult.ok(body)

    def generate_auth_url(self, client_id: str, redirect_uri: str, state: str) -> str:
        """See module-level ``generate_auth_url``."""
        return generate_auth_url(client_id, redirect_uri, state)

    def exchange_code_for_token(
        self,
        user_id: str,
        code: str,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        redirect_uri: Optional[str] = None,
    ) -> ServiceResult:
        """Exchange an authorization code for tokens and persist them.

        Returns:
            ServiceResult with ``{"access_token", "refresh_token", "expires_at"}``
        """
        client_id = client_id or self.settings.upstox_client_id
        logger.info(f"Exchanging Upstox authorization code (client {client_id[:6]}...)")

        result = self._post_token_request(
            {
                "code": code,
                "client_id": client_id,
                "client_secret": client_secret or self.settings.upstox_client_secret,
                "redirect_uri": redirect_uri or self.settings.upstox_redirect_uri,
                "grant_type": "authorization_code",
            },
            fallback="Failed to exchange authorization code",
        )
        if not result.success:
            return result

        body = result.data
        tokens = TokenSet(
            access_token=body["access_token"],
            refresh_token=body.get("refresh_token"),
            expires_at=self._expiry(body),
        )

        try:
            # Upsert keyed by user id: at most one token set per user
            self.db.merge(
                UpstoxToken(
                    user_id=user_id,
                    access_token=tokens.access_token,
                    refresh_token=tokens.refresh_token,
                    expires_at=tokens.expires_at,
                    updated_at=utcnow(),
                )
            )
            broker = self.brokers.get_or_create(user_id, BrokerType.UPSTOX)
            self.brokers.set_status(broker, BrokerStatus.ACTIVE)
        except Exception as e:
            logger.error(f"Failed to store Upstox tokens for user {user_id}: {e}")
            return ServiceResult.fail(STORE_FAILED)

        logger.info(f"Upstox connected for user {user_id}")
        return ServiceResult.ok(
            {
                "access_token": tokens.access_token,
                "refresh_token": tokens.refresh_token,
                "expires_at": tokens.expires_at,
            }
        )

    def refresh_access_token(self, user_id: str, refresh_token: Optional[str]) -> ServiceResult:
        """Obtain a new access token, keeping the same refresh token.

        Returns:
            ServiceResult with ``{"access_token", "expires_at"}``
        """
        if not refresh_token:
            return ServiceResult.fail("No refresh token available")

        result = self._post_token_request(
            {
                "refresh_token": refresh_token,
                "client_id": self.settings.upstox_client_id,
                "client_secret": self.settings.upstox_client_secret,
                "grant_type": "refresh_token",
            },
            fallback="Failed to refresh access token",
        )
        if not result.success:
            return result

        try:
            with self.db.begin_nested():
                row = self._load(user_id)
                if not row:
                    return ServiceResult.fail(NO_TOKENS)

                row.access_token = result.data["access_token"]
                row.expires_at = self._expiry(result.data)
                row.updated_at = utcnow()
        except SQLAlchemyError as e:
            logger.error(f"Failed to store refreshed Upstox token for user {user_id}: {e}")
            return ServiceResult.fail(STORE_FAILED)

        logger.info(f"Refreshed Upstox access token for user {user_id}")
        return ServiceResult.ok({"access_token": row.access_token, "expires_at": row.expires_at})

    def get_stored_tokens(self, user_id: str) -> ServiceResult:
        """Read the user's tokens, refreshing them first if expired.

        Refreshes are single-flight per user: the expiry is re-checked under
        the user's guard, and callers that waited on a refresh reuse its
        tokens instead of refreshing again.

        Returns:
            ServiceResult with a ``TokenSet``
        """
        row = self._load(user_id)
        if not row:
            return ServiceResult.fail(NO_TOKENS)

        tokens = _token_set(row)
        if not tokens.is_expired(utcnow()):
            return ServiceResult.ok(tokens)

        flight = _refresh_flight(user_id)
        with flight.lock:
            row = self._load(user_id)
            if not row:
                return ServiceResult.fail(NO_TOKENS)

            tokens = _token_set(row)
            if not tokens.is_expired(utcnow()):
                return ServiceResult.ok(tokens)

            shared = flight.result_for(row.access_token)
            if shared:
                logger.info(f"Reusing concurrent Upstox refresh for user {user_id}")
                return ServiceResult.ok(shared)

            stale_token = row.access_token
            logger.info(f"Upstox token expired for user {user_id}, refreshing")
            refreshed = self.refresh_access_token(user_id, row.refresh_token)
            if not refreshed.success:
                logger.warning(f"Upstox refresh failed for user {user_id}: {refreshed.error}")
                return ServiceResult.fail(TOKEN_EXPIRED_REFRESH_FAILED)

            tokens = TokenSet(
                access_token=refreshed.data["access_token"],
                refresh_token=tokens.refresh_token,
                expires_at=refreshed.data["expires_at"],
                updated_at=utcnow(),
            )
            flight.replaced_token = stale_token
            flight.tokens = tokens
            # The flight outlives this call until the refreshing session is gone
            self.db.info.setdefault(SESSION_FLIGHTS_KEY, []).append(flight)

        return ServiceResult.ok(tokens)

    def _authorized_get(self, user_id: str, path: str, fallback: str) -> ServiceResult:
        tokens = self.get_stored_tokens(user_id)
        if not tokens.success:
            return ServiceResult.fail(tokens.error)
        return upstox_get(
            self.http,
            f"{self.settings.upstox_api_url}{path}",
            tokens.data.access_token,
            fallback,
        )

    def get_profile(self, user_id: str) -> ServiceResult:
        """Fetch the connected Upstox account's profile."""
        return self._authorized_get(user_id, PROFILE_PATH, "Failed to fetch Upstox profile")

    def get_holdings(self, user_id: str) -> ServiceResult:
        """Fetch the user's long-term holdings from Upstox."""
        return self._authorized_get(user_id, HOLDINGS_PATH, "Failed to fetch holdings")

    def get_connection_status(self, user_id: str) -> dict:
        """Summarize whether the user has a live Upstox connection."""
        broker = self.brokers.get_by_type(user_id, BrokerType.UPSTOX)
        row = self._load(user_id)
        connected = bool(row and broker and broker.is_active)
        return {
            "is_connected": connected,
            "status": "connected" if connected else "disconnected",
            "stage": (OAuthStage.SUCCESS if connected else OAuthStage.CONFIG).value,
            "expires_at": row.expires_at if row else None,
            "last_sync": broker.last_synced_at if broker else None,
            "broker_id": broker.id if broker else None,
        }

    def disconnect(self, user_id: str) -> ServiceResult:
        """Delete the user's token set and mark the Upstox broker inactive."""
        try:
            self.db.query(UpstoxToken).filter_by(user_id=user_id).delete()
            broker = self.brokers.get_by_type(user_id, BrokerType.UPSTOX)
            if broker:
                self.brokers.set_status(broker, BrokerStatus.INACTIVE)
            self.db.flush()
        except Exception as e:
            logger.error(f"Failed to disconnect Upstox for user {user_id}: {e}")
            return ServiceResult.fail("Failed to disconnect Upstox account")

        logger.info(f"Upstox disconnected for user {user_id}")
        return ServiceResult.ok()


class UpstoxProvider(BrokerProvider):
    """Upstox: OAuth-connected broker that can import its trade book."""

    required_fields = ("api_key", "api_secret")
    missing_fields_message = "Missing client ID or client secret"

    supports_oauth = True
    supports_import = True

    @property
    def broker_type(self) -> BrokerType:
        return BrokerType.UPSTOX

    def prepare_credentials(self, credentials: BrokerCredentials) -> BrokerCredentials:
        settings = get_settings()
        return credentials.model_copy(
            update={
                "api_key": credentials.api_key or settings.upstox_client_id or None,
                "api_secret": credentials.api_secret or settings.upstox_client_secret or None,
            }
        )

    def test_connection(self, credentials: BrokerCredentials) -> ServiceResult:
        error = self.validate_credentials(credentials)
        if error:
            return ServiceResult.fail(error)
        logger.info("Upstox credentials present; authorization happens through OAuth")
        return ServiceResult.ok({"status": "requires_authorization", "broker": self.broker_type.value})

    def import_trades(self, db: Session, user_id: str) -> ServiceResult:
        """Import today's trade book into the journal."""
        from tradescope.core.brokers.importer import TradeImporter

        return TradeImporter(db, UpstoxTokenManager(db)).import_trades_to_database(user_id)

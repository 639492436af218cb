"""Tests for the Upstox OAuth helpers and UpstoxTokenManager."""

import base64
import json
import threading
import time
from datetime import timedelta
from urllib.parse import parse_qs, urlparse

import pytest
import requests
from unittest.mock import Mock, patch
from sqlalchemy.exc import OperationalError

from tradescope.config import Settings
from tradescope.core.auth import create_access_token
from tradescope.core.brokers.upstox import (
    AUTHORIZATION_URL,
    FORM_HEADERS,
    OAuthStage,
    UpstoxTokenManager,
    decode_state,
    encode_state,
    generate_auth_url,
    parse_oauth_callback,
    validate_config,
)
from tradescope.db.database import Database
from tradescope.db.models import Broker, UpstoxToken, User, utcnow


def token_response(status_code=200, body=None):
    response = Mock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 300
    response.json.return_value = body if body is not None else {}
    return response


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        upstox_client_id="client-id-123",
        upstox_client_secret="client-secret-abcdefghijkl",
        upstox_redirect_uri="https://app.example.com/callback?broker=upstox",
        upstox_api_url="https://api.upstox.com/v2",
    )


@pytest.fixture
def http():
    return Mock()


@pytest.fixture
def manager(db, http, settings):
    return UpstoxTokenManager(db, http=http, settings=settings)


def store_tokens(db, user, expires_in_seconds, access_token="old-access"):
    row = UpstoxToken(
        user_id=user.id,
        access_token=access_token,
        refresh_token="refresh-1",
        expires_at=utcnow() + timedelta(seconds=expires_in_seconds),
    )
    db.add(row)
    db.flush()
    return row


class TestAuthorizationUrl:
    """Tests for building the authorization URL."""

    def test_contains_encoded_parameters(self):
        """Should URL-encode every parameter and fix the scope."""
        url = generate_auth_url("id123", "https://app/cb?broker=upstox", "state1")

        assert url.startswith(AUTHORIZATION_URL + "?")
        assert "broker%3Dupstox" in url

        params = parse_qs(urlparse(url).query)
        assert params["client_id"] == ["id123"]
        assert params["redirect_uri"] == ["https://app/cb?broker=upstox"]
        assert params["state"] == ["state1"]
        assert params["response_type"] == ["code"]
        assert params["scope"] == ["NSE|BSE|MCX"]


class TestConfigValidation:
    """Tests for the config-stage checks."""

    def test_valid_config(self):
        assert validate_config("client-id-123", "x" * 20, "https://app/cb?broker=upstox") == []

    def test_short_values_and_missing_broker_param(self):
        """Should report every problem."""
        errors = validate_config("short", "short", "https://app/cb")

        assert "Client ID must be at least 10 characters long" in errors
        assert "Client Secret must be at least 20 characters long" in errors
        assert "Redirect URI must include broker=upstox parameter" in errors


class TestCallbackParsing:
    """Tests for consuming OAuth redirect parameters."""

    def test_consumes_code_state_and_broker(self):
        """Should extract the OAuth parameters and strip them from the URL."""
        callback = parse_oauth_callback(
            "https://app.example.com/broker-integration?code=abc&state=xyz&broker=upstox&tab=1"
        )

        assert callback.code == "abc"
        assert callback.state == "xyz"
        assert callback.broker == "upstox"
        assert callback.error is None
        assert callback.cleaned_url == "https://app.example.com/broker-integration?tab=1"

    def test_state_carries_user_id(self):
        assert decode_state(encode_state("user-1")) == "user-1"

    def test_undecodable_state(self):
        assert decode_state("%%%%") is None

    def test_unsigned_state_is_rejected(self):
        """Should not trust a hand-built state naming a user."""
        forged = base64.urlsafe_b64encode(json.dumps({"user_id": "user-1"}).encode()).decode()

        assert decode_state(forged) is None

    def test_session_token_is_not_a_state(self):
        assert decode_state(create_access_token(data={"sub": "user-1", "user_id": "user-1"})) is None

    def test_expired_state_is_rejected(self):
        stale = create_access_token(
            data={"user_id": "user-1", "purpose": "upstox_oauth"},
            expires_delta=timedelta(minutes=-1),
        )

        assert decode_state(stale) is None


class TestExchangeCode:
    """Tests for exchange_code_for_token."""

    def test_success_stores_tokens_and_activates_broker(self, db, user, manager, http):
        """Should persist the token set and an active Upstox broker."""
        http.post.return_value = token_response(
            body={"access_token": "access-1", "refresh_token": "refresh-1", "expires_in": 3600}
        )

        result = manager.exchange_code_for_token(user.id, "auth-code")

        assert result.success is True
        assert result.data["access_token"] == "access-1"

        row = db.get(UpstoxToken, user.id)
        assert row.access_token == "access-1"
        assert row.refresh_token == "refresh-1"
        assert row.expires_at > utcnow()

        broker = db.query(Broker).filter_by(user_id=user.id, broker_type="upstox").one()
        assert broker.broker_name == "Upstox"
        assert broker.is_active is True

        assert manager.get_connection_status(user.id)["stage"] == "success"
        assert OAuthStage.after(result) is OAuthStage.SUCCESS

        kwargs = http.post.call_args.kwargs
        assert kwargs["data"]["grant_type"] == "authorization_code"
        assert kwargs["data"]["code"] == "auth-code"
        assert kwargs["headers"] == FORM_HEADERS

    def test_second_exchange_replaces_tokens(self, db, user, manager, http):
        """Should keep a single token row per user."""
        http.post.return_value = token_response(body={"access_token": "access-1"})
        manager.exchange_code_for_token(user.id, "code-1")
        http.post.return_value = token_response(body={"access_token": "access-2"})
        manager.exchange_code_for_token(user.id, "code-2")

        assert db.query(UpstoxToken).count() == 1
        assert db.get(UpstoxToken, user.id).access_token == "access-2"
        assert db.query(Broker).count() == 1

    def test_failure_returns_broker_message_verbatim(self, db, user, manager, http):
        """Should surface Upstox's error text and store nothing."""
        http.post.return_value = token_response(
            400,
            {"status": "error", "errors": [{"errorCode": "UDAPI100057", "message": "Invalid Auth code"}]},
        )

        result = manager.exchange_code_for_token(user.id, "bad-code")

        assert result.success is False
        assert result.error == "Invalid Auth code"
        assert db.query(UpstoxToken).count() == 0

    def test_failure_without_body_uses_fallback(self, user, manager, http):
        response = token_response(500)
        response.json.side_effect = ValueError("no json")
        http.post.return_value = response

        result = manager.exchange_code_for_token(user.id, "code")

        assert result.error == "Failed to exchange authorization code"


class TestStoredTokens:
    """Tests for get_stored_tokens and refresh."""

    def test_missing_tokens(self, user, manager):
        assert manager.get_stored_tokens(user.id).error == "No Upstox tokens found"

    def test_valid_token_is_not_refreshed(self, db, user, manager, http):
        """Should return the stored token without calling Upstox."""
        store_tokens(db, user, expires_in_seconds=3600)

        result = manager.get_stored_tokens(user.id)

        assert result.success is True
        assert result.data.access_token == "old-access"
        http.post.assert_not_called()

    def test_expired_token_refreshes_exactly_once(self, db, user, manager, http):
        """Should refresh once and keep the same refresh token."""
        store_tokens(db, user, expires_in_seconds=-60)
        http.post.return_value = token_response(body={"access_token": "new-access", "expires_in": 3600})

        result = manager.get_stored_tokens(user.id)

        assert result.success is True
        assert result.data.access_token == "new-access"
        assert result.data.refresh_token == "refresh-1"
        assert result.data.expires_at > utcnow()
        assert http.post.call_count == 1
        assert http.post.call_args.kwargs["data"]["grant_type"] == "refresh_token"
        assert http.post.call_args.kwargs["data"]["refresh_token"] == "refresh-1"

    def test_failed_refresh_leaves_row_unchanged(self, db, user, manager, http):
        """Should report the refresh failure without touching the stored tokens."""
        row = store_tokens(db, user, expires_in_seconds=-60)
        original_expiry = row.expires_at
        http.post.return_value = token_response(401, {"message": "Invalid refresh token"})

        result = manager.get_stored_tokens(user.id)

        assert result.success is False
        assert result.error == "Token expired and refresh failed"
        assert http.post.call_count == 1

        row = db.get(UpstoxToken, user.id)
        assert row.access_token == "old-access"
        assert row.expires_at == original_expiry

    def test_refresh_storage_failure_is_reported(self, db, user, manager, http):
        """Should return a failure instead of raising when the row cannot be written."""
        store_tokens(db, user, expires_in_seconds=-60)
        http.post.return_value = token_response(body={"access_token": "new-access"})
        locked = OperationalError("UPDATE upstox_tokens", {}, Exception("database is locked"))

        with patch.object(manager, "_load", side_effect=locked):
            result = manager.refresh_access_token(user.id, "refresh-1")

        assert result.success is False
        assert result.error == "Failed to store Upstox tokens"
        assert db.get(UpstoxToken, user.id).access_token == "old-access"

    def test_refresh_without_refresh_token(self, user, manager, http):
        assert manager.refresh_access_token(user.id, None).error == "No refresh token available"
        http.post.assert_not_called()


class TestDisconnect:
    """Tests for disconnect."""

    def test_disconnect_removes_tokens_and_deactivates(self, db, user, manager, http):
        """Should delete the token row and mark the broker inactive."""
        http.post.return_value = token_response(body={"access_token": "access-1"})
        manager.exchange_code_for_token(user.id, "code")

        result = manager.disconnect(user.id)

        assert result.success is True
        assert db.query(UpstoxToken).filter_by(user_id=user.id).count() == 0
        broker = db.query(Broker).filter_by(user_id=user.id, broker_type="upstox").one()
        assert broker.status == "inactive"
        assert broker.is_active is False
        assert manager.get_stored_tokens(user.id).error == "No Upstox tokens found"
        assert manager.get_connection_status(user.id)["is_connected"] is False
        assert manager.get_connection_status(user.id)["stage"] == "config"


class TestConcurrentRefresh:
    """Refreshes across separate sessions on a shared database file."""

    def test_concurrent_expired_reads_refresh_once(self, tmp_path, settings):
        """Should post one refresh grant when two requests find the token expired."""
        database = Database(f"sqlite:///{tmp_path / 'tokens.db'}")
        database.create_all()
        with database.session() as db:
            user = User(email="trader@example.com", is_active=True)
            db.add(user)
            db.flush()
            user_id = user.id
            store_tokens(db, user, expires_in_seconds=-60)

        grants = []

        def post(url, data, headers, timeout):
            grants.append(data["grant_type"])
            time.sleep(0.1)
            return token_response(body={"access_token": "new-access", "expires_in": 3600})

        http = Mock()
        http.post.side_effect = post
        barrier = threading.Barrier(2)
        results, errors = [], []

        def read_tokens():
            try:
                with database.session() as db:
                    manager = UpstoxTokenManager(db, http=http, settings=settings)
                    barrier.wait()
                    results.append(manager.get_stored_tokens(user_id))
                    # Hold the transaction open like a request still being served
                    time.sleep(0.3)
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=read_tokens) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        try:
            assert errors == []
            assert grants == ["refresh_token"]
            assert [r.data.access_token for r in results] == ["new-access", "new-access"]
            with database.session() as db:
                assert db.get(UpstoxToken, user_id).access_token == "new-access"
        finally:
            database.dispose()


class TestAccountData:
    """Tests for profile and holdings lookups."""

    def test_profile_uses_bearer_token(self, db, user, manager, http):
        store_tokens(db, user, expires_in_seconds=3600)
        http.get.return_value = token_response(body={"status": "success", "data": {"user_id": "AB1234"}})

        result = manager.get_profile(user.id)

        assert result.success is True
        assert result.data == {"user_id": "AB1234"}
        assert http.get.call_args.args[0] == "https://api.upstox.com/v2/user/profile"
        assert http.get.call_args.kwargs["headers"]["Authorization"] == "Bearer old-access"

    def test_holdings_error_is_reported(self, db, user, manager, http):
        """Should surface Upstox's error text."""
        store_tokens(db, user, expires_in_seconds=3600)
        http.get.return_value = token_response(
            401,
            {"status": "error", "errors": [{"message": "Invalid token used to access API"}]},
        )

        result = manager.get_holdings(user.id)

        assert result.success is False
        assert result.error == "Invalid token used to access API"
        assert http.get.call_args.args[0] == "https://api.upstox.com/v2/portfolio/long-term-holdings"

    def test_network_error(self, db, user, manager, http):
        store_tokens(db, user, expires_in_seconds=3600)
        http.get.side_effect = requests.ConnectionError("Connection reset")

        assert manager.get_holdings(user.id).error == "Connection reset"

    def test_without_tokens(self, user, manager, http):
        assert manager.get_profile(user.id).error == "No Upstox tokens found"
        http.get.assert_not_called()

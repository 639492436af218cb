"""Tests for broker connection testing."""

import pytest
from unittest.mock import patch

from tradescope.config import Settings
from tradescope.core.brokers import BrokerCredentials, BrokerType, ConnectionTester, get_provider
from tradescope.core.brokers.upstox import UpstoxProvider


@pytest.fixture
def tester():
    return ConnectionTester()


@pytest.fixture(autouse=True)
def no_default_credentials():
    """Keep configured default broker keys out of these tests."""
    clean = Settings(_env_file=None)
    with patch("tradescope.core.brokers.providers.get_settings", return_value=clean), \
            patch("tradescope.core.brokers.upstox.get_settings", return_value=clean):
        yield


class TestRequiredFields:
    """Each broker rejects its own missing fields before any network call."""

    @pytest.mark.parametrize(
        "broker_type,credentials,message",
        [
            ("zerodha", {"api_key": "k"}, "Missing API key or API secret"),
            ("upstox", {"api_secret": "s"}, "Missing client ID or client secret"),
            ("interactive_brokers", {"api_key": "k", "user_id": "u"}, "Missing API key, user ID, or password"),
            ("mt5", {"user_id": "42", "password": "pw"}, "Missing user ID, password, or server address"),
            ("alpaca", {"api_secret": "s"}, "Missing API key or API secret"),
        ],
    )
    def test_missing_fields_message(self, tester, broker_type, credentials, message):
        """Should fail with the broker-specific message."""
        result = tester.test(broker_type, credentials)

        assert result.success is False
        assert result.error == message

    def test_mt5_without_server_makes_no_network_call(self, tester):
        """Should not touch the network when MT5 server address is missing."""
        with patch("requests.sessions.Session.request") as mock_request:
            result = tester.test(
                BrokerType.MT5,
                BrokerCredentials(account_user_id="42", password="pw"),
            )

        assert result.error == "Missing user ID, password, or server address"
        mock_request.assert_not_called()

    def test_blank_values_count_as_missing(self, tester):
        """Should treat whitespace-only values as missing."""
        result = tester.test("alpaca", {"api_key": "   ", "api_secret": "s"})

        assert result.error == "Missing API key or API secret"


class TestSuccessfulChecks:
    """Tests for complete credential sets."""

    def test_complete_mt5_credentials_connect(self, tester):
        """Should report connected with the server."""
        result = tester.test("mt5", {"userId": "42", "password": "pw", "serverAddress": "Broker-Live"})

        assert result.success is True
        assert result.data["status"] == "connected"
        assert result.data["broker"] == "mt5"
        assert result.data["server"] == "Broker-Live"

    def test_alias_resolves_interactive_brokers(self, tester):
        """Should accept the 'interactive' alias."""
        result = tester.test("interactive", {"api_key": "k", "user_id": "u", "password": "p"})

        assert result.success is True
        assert result.data["broker"] == "interactive_brokers"

    def test_upstox_requires_authorization(self, tester):
        """Should defer Upstox liveness to the OAuth flow."""
        result = tester.test("upstox", {"api_key": "client-id-123", "api_secret": "secret"})

        assert result.success is True
        assert result.data["status"] == "requires_authorization"

    def test_zerodha_uses_configured_defaults(self, tester):
        """Should fill blank Zerodha fields from settings."""
        configured = Settings(_env_file=None, zerodha_api_key="key", zerodha_api_secret="secret")

        with patch("tradescope.core.brokers.providers.get_settings", return_value=configured):
            result = tester.test("zerodha", {})

        assert result.success is True


class TestUnsupportedBrokers:
    """Tests for unknown broker types."""

    def test_unknown_type_fails(self, tester):
        """Should name the unsupported broker."""
        result = tester.test("robinhood", {"api_key": "k"})

        assert result.success is False
        assert result.error == "Unsupported broker type: robinhood"

    def test_get_provider_by_display_name(self):
        """Should resolve a provider from its display name."""
        assert isinstance(get_provider("Upstox"), UpstoxProvider)
        assert get_provider("robinhood") is None

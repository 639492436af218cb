"""Credential-based broker providers.

None of these brokers is contacted during a connection test yet: each check
validates its own required-field subset and reports the connection as live.
"""

from __future__ import annotations

import logging

from tradescope.config import get_settings
from tradescope.core.brokers.base import BrokerProvider
from tradescope.core.brokers.models import BrokerCredentials, BrokerType
from tradescope.core.result import ServiceResult

logger = logging.getLogger(__name__)


def _connected(provider: BrokerProvider, **details) -> ServiceResult:
    logger.info(f"{provider.display_name} connection test passed")
    return ServiceResult.ok({"status": "connected", "broker": provider.broker_type.value, **details})


class ZerodhaProvider(BrokerProvider):
    """Zerodha Kite Connect."""

    required_fields = ("api_key", "api_secret")
    missing_fields_message = "Missing API key or API secret"

    @property
    def broker_type(self) -> BrokerType:
        return BrokerType.ZERODHA

    def prepare_credentials(self, credentials: BrokerCredentials) -> BrokerCredentials:
        settings = get_settings()
        return credentials.model_copy(
            update={
                "api_key": credentials.api_key or settings.zerodha_api_key or None,
                "api_secret": credentials.api_secret or settings.zerodha_api_secret or None,
            }
        )

    def test_connection(self, credentials: BrokerCredentials) -> ServiceResult:
        error = self.validate_credentials(credentials)
        if error:
            return ServiceResult.fail(error)
        # TOTP is only needed for automated login, not for the key check
        return _connected(self, totp_configured=credentials.has("totp_key"))


class InteractiveBrokersProvider(BrokerProvider):
    """Interactive Brokers (Client Portal)."""

    required_fields = ("api_key", "account_user_id", "password")
    missing_fields_message = "Missing API key, user ID, or password"

    @property
    def broker_type(self) -> BrokerType:
        return BrokerType.INTERACTIVE_BROKERS

    def test_connection(self, credentials: BrokerCredentials) -> ServiceResult:
        error = self.validate_credentials(credentials)
        if error:
            return ServiceResult.fail(error)
        return _connected(self)


class MT5Provider(BrokerProvider):
    """MetaTrader 5 terminal login."""

    required_fields = ("account_user_id", "password", "server_address")
    missing_fields_message = "Missing user ID, password, or server address"

    @property
    def broker_type(self) -> BrokerType:
        return BrokerType.MT5

    def test_connection(self, credentials: BrokerCredentials) -> ServiceResult:
        error = self.validate_credentials(credentials)
        if error:
            return ServiceResult.fail(error)
        return _connected(self, server=credentials.server_address.strip())


class AlpacaProvider(BrokerProvider):
    """Alpaca Markets trading API."""

    required_fields = ("api_key", "api_secret")
    missing_fields_message = "Missing API key or API secret"

    @property
    def broker_type(self) -> BrokerType:
        return BrokerType.ALPACA

    def prepare_credentials(self, credentials: BrokerCredentials) -> BrokerCredentials:
        settings = get_settings()
        return credentials.model_copy(
            update={
                "api_key": credentials.api_key or settings.alpaca_api_key or None,
                "api_secret": credentials.api_secret or settings.alpaca_api_secret or None,
            }
        )

    def test_connection(self, credentials: BrokerCredentials) -> ServiceResult:
        error = self.validate_credentials(credentials)
        if error:
            return ServiceResult.fail(error)
        return _connected(self)

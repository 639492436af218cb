"""Broker provider registry and connection testing."""

from __future__ import annotations

import logging
from typing import Dict, Optional, Union

from pydantic import ValidationError

from tradescope.core.brokers.base import BrokerProvider
from tradescope.core.brokers.models import BrokerCredentials, BrokerType
from tradescope.core.brokers.providers import (
    AlpacaProvider,
    InteractiveBrokersProvider,
    MT5Provider,
    ZerodhaProvider,
)
from tradescope.core.brokers.upstox import UpstoxProvider
from tradescope.core.result import ServiceResult

logger = logging.getLogger(__name__)

PROVIDERS: Dict[BrokerType, BrokerProvider] = {
    provider.broker_type: provider
    for provider in (
        ZerodhaProvider(),
        UpstoxProvider(),
        InteractiveBrokersProvider(),
        MT5Provider(),
        AlpacaProvider(),
    )
}


def get_provider(broker_type: Union[str, BrokerType]) -> Optional[BrokerProvider]:
    """Get the provider for a broker type, value, alias or display name."""
    if not isinstance(broker_type, BrokerType):
        try:
            broker_type = BrokerType.parse(broker_type)
        except ValueError:
            return None
    return PROVIDERS.get(broker_type)


class ConnectionTester:
    """Dispatches a connection test to the broker's provider."""

    def test(
        self,
        broker_type: Union[str, BrokerType],
        credentials: Union[BrokerCredentials, dict],
    ) -> ServiceResult:
        """Validate credentials for a broker and check the connection.

        Missing required fields fail before any network activity.

        Returns:
            ServiceResult with ``{"status": ...}`` on success
        """
        provider = get_provider(broker_type)
        if provider is None:
            name = broker_type.value if isinstance(broker_type, BrokerType) else broker_type
            return ServiceResult.fail(f"Unsupported broker type: {name}")

        if isinstance(credentials, dict):
            try:
                credentials = BrokerCredentials.model_validate(credentials)
            except ValidationError:
                return ServiceResult.fail("Invalid credentials format")

        credentials = provider.prepare_credentials(credentials)

        try:
            return provider.test_connection(credentials)
        except Exception as e:
            logger.error(f"{provider.display_name} connection test failed: {e}")
            return ServiceResult.fail(str(e) or "Connection test failed")


connection_tester = ConnectionTester()

"""Broker integrations: credentials, connection tests, Upstox OAuth and trade import.

Usage:
    from tradescope.core.brokers import connection_tester, UpstoxTokenManager

    # Validate a credential set before saving it
    result = connection_tester.test("mt5", {"user_id": "42", "password": "...", "server_address": "..."})

    # Pull the Upstox trade book for a user
    importer = TradeImporter(db, UpstoxTokenManager(db))
    result = importer.import_trades_to_database(user.id)
"""

from tradescope.core.brokers.models import (
    BrokerType,
    BrokerStatus,
    BrokerCredentials,
    BrokerCreate,
    TokenSet,
    ImportResult,
    SyncResult,
)
from tradescope.core.brokers.base import BrokerProvider
from tradescope.core.brokers.repository import BrokerRepository
from tradescope.core.brokers.credentials import CredentialCipher, CredentialStore
from tradescope.core.brokers.upstox import (
    OAuthStage,
    UpstoxProvider,
    UpstoxTokenManager,
    generate_auth_url,
    parse_oauth_callback,
)
from tradescope.core.brokers.connection import ConnectionTester, connection_tester, get_provider
from tradescope.core.brokers.importer import TradeImporter
from tradescope.core.brokers.sync import BrokerSyncService, get_broker_sync_service

__all__ = [
    # Models
    "BrokerType",
    "BrokerStatus",
    "BrokerCredentials",
    "BrokerCreate",
    "TokenSet",
    "ImportResult",
    "SyncResult",
    # Providers
    "BrokerProvider",
    "UpstoxProvider",
    "get_provider",
    # Services
    "BrokerRepository",
    "CredentialCipher",
    "CredentialStore",
    "ConnectionTester",
    "connection_tester",
    "OAuthStage",
    "UpstoxTokenManager",
    "generate_auth_url",
    "parse_oauth_callback",
    "TradeImporter",
    "BrokerSyncService",
    "get_broker_sync_service",
]

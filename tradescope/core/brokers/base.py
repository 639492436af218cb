"""Base broker provider abstraction."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional, Tuple

from tradescope.core.brokers.models import BrokerCredentials, BrokerType
from tradescope.core.result import ServiceResult


class BrokerProvider(ABC):
    """Abstract base class for broker integrations.

    Every provider can:
    1. Declare which credential fields it needs
    2. Test a connection with a set of credentials

    Providers that set ``supports_oauth`` / ``supports_import`` also take part
    in the OAuth flow and trade import.
    """

    #: Credential fields that must be present and non-blank
    required_fields: Tuple[str, ...] = ()

    #: Error returned when any required field is missing
    missing_fields_message: str = "Missing required credentials"

    supports_oauth: bool = False
    supports_import: bool = False

    @property
    @abstractmethod
    def broker_type(self) -> BrokerType:
        """Return the broker type identifier."""
        pass

    @property
    def display_name(self) -> str:
        """Return human-readable broker name."""
        return self.broker_type.display_name

    def prepare_credentials(self, credentials: BrokerCredentials) -> BrokerCredentials:
        """Hook for filling blank fields (e.g. from configured defaults)."""
        return credentials

    def validate_credentials(self, credentials: BrokerCredentials) -> Optional[str]:
        """Return an error message if a required field is missing."""
        if all(credentials.has(name) for name in self.required_fields):
            return None
        return self.missing_fields_message

    @abstractmethod
    def test_connection(self, credentials: BrokerCredentials) -> ServiceResult:
        """Check that the credentials can reach the broker.

        Args:
            credentials: Credentials to check (already prepared)

        Returns:
            ServiceResult with ``{"status": ...}`` data on success
        """
        pass

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(broker_type={self.broker_type.value})>"

"""Broker integration data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class BrokerType(str, Enum):
    """Supported broker types."""

    ZERODHA = "zerodha"
    UPSTOX = "upstox"
    INTERACTIVE_BROKERS = "interactive_brokers"
    MT5 = "mt5"
    ALPACA = "alpaca"

    @property
    def display_name(self) -> str:
        return BROKER_DISPLAY_NAMES[self]

    @classmethod
    def parse(cls, value: str) -> "BrokerType":
        """Resolve a broker type from a type value, alias or display name.

        Raises:
            ValueError: If the name matches no supported broker
        """
        key = (value or "").strip().lower()
        if key in BROKER_ALIASES:
            return BROKER_ALIASES[key]
        for broker_type in cls:
            if key in (broker_type.value, broker_type.display_name.lower()):
                return broker_type
        raise ValueError(f"Unsupported broker type: {value}")


BROKER_DISPLAY_NAMES = {
    BrokerType.ZERODHA: "Zerodha Kite",
    BrokerType.UPSTOX: "Upstox",
    BrokerType.INTERACTIVE_BROKERS: "Interactive Brokers",
    BrokerType.MT5: "MetaTrader 5",
    BrokerType.ALPACA: "Alpaca Markets",
}

BROKER_ALIASES = {
    "interactive": BrokerType.INTERACTIVE_BROKERS,
    "ibkr": BrokerType.INTERACTIVE_BROKERS,
    "metatrader": BrokerType.MT5,
    "kite": BrokerType.ZERODHA,
}


class BrokerStatus(str, Enum):
    """Broker connection status."""

    ACTIVE = "active"
    INACTIVE = "inactive"


class BrokerCredentials(BaseModel):
    """Credential fields stored in a broker's serialized blob.

    Which fields are required depends on the broker; see each provider's
    ``required_fields``. camelCase keys sent by the web client are accepted.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    api_key: Optional[str] = Field(None, validation_alias=AliasChoices("api_key", "apiKey"))
    api_secret: Optional[str] = Field(None, validation_alias=AliasChoices("api_secret", "apiSecret"))
    account_user_id: Optional[str] = Field(
        None, validation_alias=AliasChoices("account_user_id", "user_id", "userId")
    )
    password: Optional[str] = None
    totp_key: Optional[str] = Field(None, validation_alias=AliasChoices("totp_key", "totpKey"))
    server_address: Optional[str] = Field(
        None, validation_alias=AliasChoices("server_address", "serverAddress")
    )

    def has(self, field_name: str) -> bool:
        """True if the field is present and not blank."""
        value = getattr(self, field_name, None)
        return bool(value and value.strip())


class BrokerCreate(BrokerCredentials):
    """Request to add a broker connection."""

    name: str
    broker_type: Optional[str] = Field(None, validation_alias=AliasChoices("broker_type", "brokerType"))

    def credentials(self) -> BrokerCredentials:
        return BrokerCredentials.model_validate(self.model_dump(include=set(BrokerCredentials.model_fields)))


@dataclass
class TokenSet:
    """OAuth tokens for a user."""

    access_token: str
    refresh_token: Optional[str]
    expires_at: datetime
    updated_at: Optional[datetime] = None

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


@dataclass
class ImportResult:
    """Result of importing a broker's trade book."""

    imported_count: int
    total_upstox_trades: int
    trades: List = field(default_factory=list)


@dataclass
class SyncResult:
    """Result of syncing one broker connection."""

    broker_id: str
    broker_name: str
    success: bool
    imported_count: int
    total_trades: int
    error: Optional[str]
    synced_at: datetime

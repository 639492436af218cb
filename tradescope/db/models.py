"""SQLAlchemy ORM models."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    String,
    Float,
    Boolean,
    DateTime,
    Text,
    ForeignKey,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def generate_uuid() -> str:
    """Generate a new UUID string."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Get current UTC timestamp (naive)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(Base):
    """Journal owner."""

    __tablename__ = "users"

    id = Column(String, primary_key=True, default=generate_uuid)
    email = Column(String(255), unique=True, nullable=False)
    display_name = Column(String(100), nullable=True)
    password_hash = Column(String(255), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    last_login_at = Column(DateTime, nullable=True)

    # Relationships
    brokers = relationship("Broker", back_populates="user", cascade="all, delete-orphan")
    trades = relationship("Trade", back_populates="user", cascade="all, delete-orphan")
    strategies = relationship("Strategy", back_populates="user", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email})>"


class Broker(Base):
    """Broker connection holding a serialized credential blob."""

    __tablename__ = "brokers"

    id = Column(String, primary_key=True, default=generate_uuid)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    broker_name = Column(String(100), nullable=False)
    broker_type = Column(String(50), nullable=False)  # BrokerType value
    credentials = Column(Text, nullable=True)  # JSON, Fernet-encrypted when a key is set
    status = Column(String(20), default="active", nullable=False)  # active, inactive
    is_active = Column(Boolean, default=True, nullable=False)
    last_synced_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    user = relationship("User", back_populates="brokers")
    accounts = relationship("TradingAccount", back_populates="broker", cascade="all, delete-orphan")
    trades = relationship("Trade", back_populates="broker")

    def __repr__(self) -> str:
        return f"<Broker(id={self.id}, name={self.broker_name}, status={self.status})>"


class UpstoxToken(Base):
    """Upstox OAuth token set, at most one per user."""

    __tablename__ = "upstox_tokens"

    user_id = Column(String, ForeignKey("users.id"), primary_key=True)
    access_token = Column(Text, nullable=False)
    refresh_token = Column(Text, nullable=True)
    expires_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<UpstoxToken(user_id={self.user_id}, expires_at={self.expires_at})>"


class TradingAccount(Base):
    """Trading account held at a broker."""

    __tablename__ = "trading_accounts"

    id = Column(String, primary_key=True, default=generate_uuid)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    broker_id = Column(String, ForeignKey("brokers.id"), nullable=True)
    account_number = Column(String(100), nullable=True)
    name = Column(String(100), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    # Relationships
    broker = relationship("Broker", back_populates="accounts")

    def __repr__(self) -> str:
        return f"<TradingAccount(id={self.id}, name={self.name})>"


class Strategy(Base):
    """Named trading strategy."""

    __tablename__ = "strategies"
    __table_args__ = (UniqueConstraint("user_id", "name", name="uq_strategy_user_name"),)

    id = Column(String, primary_key=True, default=generate_uuid)
    user_id = Column(String, ForeignKey("users.id"), nullable=False)
    name = Column(String(100), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    # Relationships
    user = relationship("User", back_populates="strategies")
    trades = relationship("Trade", back_populates="strategy")

    def __repr__(self) -> str:
        return f"<Strategy(id={self.id}, name={self.name})>"


class Trade(Base):
    """Journaled trade, entered manually or imported from a broker."""

    __tablename__ = "trades"

    id = Column(String, primary_key=True, default=generate_uuid)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    broker_id = Column(String, ForeignKey("brokers.id"), nullable=True)
    strategy_id = Column(String, ForeignKey("strategies.id"), nullable=True)
    symbol = Column(String(50), nullable=False)
    asset_class = Column(String(30), nullable=True)
    trade_type = Column(String(10), nullable=False)  # buy, sell
    position_side = Column(String(10), nullable=False)  # long, short
    quantity = Column(Float, nullable=False)
    entry_price = Column(Float, nullable=False)
    exit_price = Column(Float, nullable=True)
    pnl = Column(Float, nullable=True)
    pnl_percentage = Column(Float, nullable=True)
    pnl_currency = Column(String(3), default="USD", nullable=False)
    fees = Column(Float, default=0.0, nullable=False)
    status = Column(String(10), default="open", nullable=False)  # open, closed
    process = Column(String(20), default="manual", nullable=False)  # manual, import
    notes = Column(Text, nullable=True)
    opened_at = Column(DateTime, nullable=False)
    closed_at = Column(DateTime, nullable=True)
    external_id = Column(String(100), nullable=True, index=True)  # Broker-assigned trade id
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    user = relationship("User", back_populates="trades")
    broker = relationship("Broker", back_populates="trades")
    strategy = relationship("Strategy", back_populates="trades")

    @property
    def is_closed(self) -> bool:
        return self.status == "closed"

    def __repr__(self) -> str:
        return f"<Trade(id={self.id}, symbol={self.symbol}, status={self.status})>"

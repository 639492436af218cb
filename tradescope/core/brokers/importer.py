"""Import an Upstox trade book into the journal."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

import requests
from sqlalchemy.orm import Session

from tradescope.core.brokers.models import BrokerType, ImportResult
from tradescope.core.brokers.repository import BrokerRepository
from tradescope.core.brokers.upstox import TRADE_BOOK_PATH, UpstoxTokenManager, upstox_get
from tradescope.core.result import ServiceResult
from tradescope.core.trades.repository import TradeRepository, position_side_for
from tradescope.db.models import utcnow

logger = logging.getLogger(__name__)

FETCH_FAILED = "Failed to fetch Upstox trades"

TIMESTAMP_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S",
    "%d-%b-%Y %H:%M:%S",
    "%Y-%m-%d",
)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse the timestamp formats Upstox uses.

    Returns None if value is empty or unparseable.
    """
    if not value:
        return None

    for fmt in TIMESTAMP_FORMATS:
        try:
            return datetime.strptime(value.strip(), fmt)
        except ValueError:
            continue
    return None


def map_upstox_trade(raw: dict) -> dict:
    """Map an Upstox trade-book entry onto Trade column values.

    Each entry is an executed fill, so it is journaled as a closed trade
    opened and closed at the fill time and price.

    Raises:
        ValueError: If a required field is missing or malformed
    """
    symbol = raw.get("trading_symbol") or raw.get("tradingsymbol")
    if not symbol:
        raise ValueError("missing trading symbol")

    transaction_type = (raw.get("transaction_type") or "").upper()
    if transaction_type not in ("BUY", "SELL"):
        raise ValueError(f"unknown transaction type {transaction_type!r}")
    trade_type = "buy" if transaction_type == "BUY" else "sell"

    price = float(raw.get("average_price") or raw.get("price") or 0)
    traded_at = (
        parse_timestamp(raw.get("trade_date"))
        or parse_timestamp(raw.get("exchange_timestamp"))
        or parse_timestamp(raw.get("order_timestamp"))
        or utcnow()
    )

    return {
        "symbol": symbol.upper(),
        "asset_class": raw.get("instrument_type") or raw.get("exchange"),
        "trade_type": trade_type,
        "position_side": position_side_for(trade_type),
        "quantity": float(raw["quantity"]),
        "entry_price": price,
        "exit_price": price,
        "status": "closed",
        "process": "import",
        "pnl_currency": "INR",
        "opened_at": traded_at,
        "closed_at": traded_at,
    }


class TradeImporter:
    """Pulls the Upstox trade book and upserts it as journal trades."""

    def __init__(
        self,
        db: Session,
        token_manager: UpstoxTokenManager,
        http: Optional[requests.Session] = None,
    ):
        self.db = db
        self.token_manager = token_manager
        self.http = http or token_manager.http
        self.brokers = BrokerRepository(db)
        self.trades = TradeRepository(db)

    @property
    def trade_book_url(self) -> str:
        return f"{self.token_manager.settings.upstox_api_url}{TRADE_BOOK_PATH}"

    def fetch_trade_book(self, access_token: str) -> ServiceResult:
        """GET the trade book with the user's bearer token."""
        result = upstox_get(self.http, self.trade_book_url, access_token, FETCH_FAILED)
        if not result.success:
            return result

        trades = result.data or []
        if not isinstance(trades, list):
            logger.error(f"Upstox trade book data is a {type(trades).__name__}, expected a list")
            return ServiceResult.fail(FETCH_FAILED)
        return ServiceResult.ok(trades)

    def import_trades_to_database(self, user_id: str) -> ServiceResult:
        """Import the user's Upstox trades.

        Trades that fail to map or upsert are skipped; the gap between
        ``imported_count`` and ``total_upstox_trades`` is the only report.

        Returns:
            ServiceResult with an ``ImportResult``
        """
        tokens = self.token_manager.get_stored_tokens(user_id)
        if not tokens.success:
            return ServiceResult.fail(tokens.error)

        book = self.fetch_trade_book(tokens.data.access_token)
        if not book.success:
            return book

        broker = self.brokers.get_or_create(user_id, BrokerType.UPSTOX)
        raw_trades = book.data
        imported = []

        for raw in raw_trades:
            external_id = None
            try:
                if not isinstance(raw, dict):
                    raise ValueError(f"entry is a {type(raw).__name__}, not an object")
                external_id = raw.get("trade_id") or raw.get("order_id")
                if not external_id:
                    raise ValueError("missing trade id")
                with self.db.begin_nested():
                    trade = self.trades.upsert_by_external_id(
                        user_id=user_id,
                        broker_id=broker.id,
                        external_id=str(external_id),
                        fields=map_upstox_trade(raw),
                    )
                imported.append(trade)
            except Exception as e:
                logger.warning(f"Skipping Upstox trade {external_id}: {e}")

        broker.last_synced_at = utcnow()
        self.db.flush()

        logger.info(f"Imported {len(imported)}/{len(raw_trades)} Upstox trades for user {user_id}")
        return ServiceResult.ok(
            ImportResult(
                imported_count=len(imported),
                total_upstox_trades=len(raw_trades),
                trades=imported,
            )
        )

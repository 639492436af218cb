"""Tests for TradeRepository, StrategyRepository and summaries."""

from datetime import datetime

import pytest

from tradescope.core.trades import (
    StrategyRepository,
    TradeCreate,
    TradeFilters,
    TradeRepository,
    TradeUpdate,
    summarize_trades,
)
from tradescope.db.models import Broker, Strategy


def new_trade(**overrides):
    data = {
        "symbol": "aapl",
        "trade_type": "buy",
        "quantity": 10,
        "entry_price": 100.0,
        "trade_date": datetime(2026, 10, 1, 10, 0),
    }
    data.update(overrides)
    return TradeCreate(**data)


@pytest.fixture
def repo(db):
    return TradeRepository(db)


class TestCreate:
    """Tests for journaling trades."""

    def test_open_trade(self, repo, user):
        """Should store an open long trade with an uppercased symbol."""
        trade = repo.create(user.id, new_trade())

        assert trade.symbol == "AAPL"
        assert trade.status == "open"
        assert trade.position_side == "long"
        assert trade.pnl is None
        assert trade.process == "manual"

    def test_exit_price_closes_long(self, repo, user):
        """Should compute P&L for a buy closed higher."""
        trade = repo.create(user.id, new_trade(exit_price=110.0))

        assert trade.status == "closed"
        assert trade.pnl == pytest.approx(100.0)
        assert trade.pnl_percentage == pytest.approx(10.0)
        assert trade.closed_at == datetime(2026, 10, 1, 10, 0)

    def test_exit_price_closes_short(self, repo, user):
        """Should flip the sign for sells."""
        trade = repo.create(user.id, new_trade(trade_type="sell", exit_price=90.0))

        assert trade.position_side == "short"
        assert trade.pnl == pytest.approx(100.0)
        assert trade.pnl_percentage == pytest.approx(10.0)

    def test_invalid_trade_type_rejected(self):
        with pytest.raises(ValueError):
            new_trade(trade_type="hold")

    def test_strategy_is_upserted(self, db, repo, user):
        """Should reuse a strategy by name."""
        repo.create(user.id, new_trade(strategy="Breakout"))
        repo.create(user.id, new_trade(strategy="Breakout"))

        assert db.query(Strategy).count() == 1
        strategy, count = StrategyRepository(db).get_all_with_counts(user.id)[0]
        assert strategy.name == "Breakout"
        assert count == 2

    def test_own_broker_is_attached(self, db, repo, user):
        broker = Broker(user_id=user.id, broker_name="Alpaca", broker_type="alpaca")
        db.add(broker)
        db.flush()

        trade = repo.create(user.id, new_trade(broker_id=broker.id))

        assert trade.broker_id == broker.id

    def test_foreign_broker_rejected(self, db, repo, user, other_user):
        """Should refuse a broker that belongs to another user."""
        foreign = Broker(user_id=other_user.id, broker_name="Alpaca", broker_type="alpaca")
        db.add(foreign)
        db.flush()

        with pytest.raises(ValueError, match="Broker not found"):
            repo.create(user.id, new_trade(broker_id=foreign.id))

        assert repo.get_all(user.id) == []


class TestClose:
    """Tests for closing trades."""

    def test_close_open_trade(self, repo, user):
        trade = repo.create(user.id, new_trade())

        repo.close(trade, 95.0)

        assert trade.status == "closed"
        assert trade.exit_price == 95.0
        assert trade.pnl == pytest.approx(-50.0)
        assert trade.closed_at is not None

    def test_close_twice_raises(self, repo, user):
        trade = repo.create(user.id, new_trade(exit_price=110.0))

        with pytest.raises(ValueError, match="already closed"):
            repo.close(trade, 120.0)

    def test_update_with_exit_price_recomputes(self, repo, user):
        trade = repo.create(user.id, new_trade())

        repo.update(trade, TradeUpdate(exit_price=120.0, notes="took profit"))

        assert trade.status == "closed"
        assert trade.pnl == pytest.approx(200.0)
        assert trade.notes == "took profit"


class TestQueries:
    """Tests for listing trades."""

    def test_filters(self, repo, user, other_user):
        """Should filter by status and case-insensitive symbol, scoped to the user."""
        repo.create(user.id, new_trade(symbol="RELIANCE", exit_price=2600.0))
        repo.create(user.id, new_trade(symbol="TCS"))
        repo.create(other_user.id, new_trade(symbol="RELIANCE"))

        assert len(repo.get_all(user.id)) == 2
        assert [t.symbol for t in repo.get_all(user.id, TradeFilters(symbol="rel"))] == ["RELIANCE"]
        assert [t.symbol for t in repo.get_all(user.id, TradeFilters(status="open"))] == ["TCS"]

    def test_list_newest_first_and_range_oldest_first(self, repo, user):
        repo.create(user.id, new_trade(symbol="OLD", trade_date=datetime(2026, 1, 1)))
        repo.create(user.id, new_trade(symbol="NEW", trade_date=datetime(2026, 6, 1)))

        assert [t.symbol for t in repo.get_all(user.id)] == ["NEW", "OLD"]
        assert [t.symbol for t in repo.get_in_range(user.id)] == ["OLD", "NEW"]
        assert [t.symbol for t in repo.get_in_range(user.id, date_from=datetime(2026, 3, 1))] == ["NEW"]

    def test_paging(self, repo, user):
        for day in range(1, 6):
            repo.create(user.id, new_trade(trade_date=datetime(2026, 10, day)))

        page = repo.get_all(user.id, TradeFilters(limit=2, offset=2))

        assert [t.opened_at.day for t in page] == [3, 2]


class TestSummary:
    """Tests for summarize_trades."""

    def test_summary_metrics(self, repo, user):
        repo.create(user.id, new_trade(exit_price=110.0))  # +100
        repo.create(user.id, new_trade(exit_price=95.0))  # -50
        repo.create(user.id, new_trade(quantity=2, entry_price=50.0))  # open

        summary = summarize_trades(repo.get_in_range(user.id))

        assert summary.total_trades == 3
        assert summary.closed_trades == 2
        assert summary.open_trades == 1
        assert summary.realized_pnl == pytest.approx(50.0)
        assert summary.win_rate == pytest.approx(50.0)
        assert summary.average_win == pytest.approx(100.0)
        assert summary.average_loss == pytest.approx(-50.0)
        assert summary.open_exposure == pytest.approx(100.0)

    def test_empty_summary(self):
        summary = summarize_trades([])

        assert summary.total_trades == 0
        assert summary.win_rate == 0.0

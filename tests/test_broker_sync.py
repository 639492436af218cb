"""Tests for BrokerSyncService and the sync scheduler."""

from unittest.mock import Mock, patch

from tradescope.core.brokers import BrokerRepository, BrokerType, ImportResult, get_broker_sync_service
from tradescope.core.brokers.upstox import UpstoxProvider
from tradescope.core.result import ServiceResult
from tradescope.core.scheduler import SyncScheduler
from tradescope.db.models import User


class TestBrokerSyncService:
    """Tests for syncing a user's brokers."""

    def test_only_importing_brokers_are_synced(self, db, user):
        """Should run the Upstox import and skip credential-only brokers."""
        repo = BrokerRepository(db)
        repo.create(user.id, "MetaTrader 5", BrokerType.MT5)
        upstox = repo.create(user.id, "Upstox", BrokerType.UPSTOX)

        imported = ServiceResult.ok(ImportResult(imported_count=3, total_upstox_trades=4))
        with patch.object(UpstoxProvider, "import_trades", return_value=imported) as mock_import:
            results = get_broker_sync_service(db).sync_all(user)

        mock_import.assert_called_once_with(db, user.id)
        assert len(results) == 1
        assert results[0].broker_id == upstox.id
        assert results[0].success is True
        assert results[0].imported_count == 3
        assert results[0].total_trades == 4

    def test_inactive_brokers_are_skipped(self, db, user):
        repo = BrokerRepository(db)
        upstox = repo.create(user.id, "Upstox", BrokerType.UPSTOX)
        upstox.is_active = False
        db.flush()

        assert get_broker_sync_service(db).sync_all(user) == []

    def test_failed_import_is_reported(self, db, user):
        """Should report the import error per broker."""
        BrokerRepository(db).create(user.id, "Upstox", BrokerType.UPSTOX)

        results = get_broker_sync_service(db).sync_all(user)

        assert results[0].success is False
        assert results[0].error == "No Upstox tokens found"

    def test_sync_all_users_skips_inactive_users(self, db, user):
        disabled = User(email="disabled@example.com", is_active=False)
        db.add(disabled)
        db.flush()
        BrokerRepository(db).create(user.id, "Upstox", BrokerType.UPSTOX)
        BrokerRepository(db).create(disabled.id, "Upstox", BrokerType.UPSTOX)

        results = get_broker_sync_service(db).sync_all_users()

        assert len(results) == 1

    def test_crashing_import_does_not_stop_other_users(self, db, user, other_user):
        """Should report a crashed import and keep syncing the remaining users."""
        repo = BrokerRepository(db)
        crashed = repo.create(user.id, "Upstox", BrokerType.UPSTOX)
        synced = repo.create(other_user.id, "Upstox", BrokerType.UPSTOX)

        def import_trades(session, user_id):
            if user_id == user.id:
                raise AttributeError("'NoneType' object has no attribute 'get'")
            return ServiceResult.ok(ImportResult(imported_count=2, total_upstox_trades=2))

        with patch.object(UpstoxProvider, "import_trades", side_effect=import_trades):
            results = {r.broker_id: r for r in get_broker_sync_service(db).sync_all_users()}

        assert results[crashed.id].success is False
        assert "NoneType" in results[crashed.id].error
        assert results[synced.id].success is True
        assert results[synced.id].imported_count == 2


class TestSyncScheduler:
    """Tests for SyncScheduler cycles."""

    def test_failing_cycle_does_not_raise(self):
        """Should log a failed cycle and keep going."""
        scheduler = SyncScheduler(database=Mock(), interval_seconds=60)

        with patch("tradescope.core.scheduler.run_sync_cycle", side_effect=RuntimeError("db down")):
            scheduler._run_cycle()
            scheduler._run_cycle()

        assert scheduler._cycle_count == 2

    def test_cycle_uses_configured_database(self):
        database = Mock()
        scheduler = SyncScheduler(database=database, interval_seconds=60)

        with patch("tradescope.core.scheduler.run_sync_cycle", return_value=[]) as mock_cycle:
            scheduler._run_cycle()

        mock_cycle.assert_called_once_with(database)

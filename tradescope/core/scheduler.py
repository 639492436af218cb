"""Scheduler for running periodic broker syncs."""

from __future__ import annotations

import logging
import signal
import sys
from typing import List, Optional

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.interval import IntervalTrigger

from tradescope.config import get_settings
from tradescope.core.brokers.models import SyncResult
from tradescope.core.brokers.sync import BrokerSyncService
from tradescope.db.database import Database
from tradescope.db.models import utcnow

logger = logging.getLogger(__name__)


def run_sync_cycle(database: Database) -> List[SyncResult]:
    """Import trades for every active user with an importing broker."""
    with database.session() as db:
        return BrokerSyncService(db).sync_all_users()


class SyncScheduler:
    """Scheduler for periodic broker trade imports."""

    def __init__(
        self,
        database: Optional[Database] = None,
        interval_seconds: Optional[int] = None,
    ):
        """Initialize the scheduler.

        Args:
            database: Database to sync into (defaults to settings.database_url)
            interval_seconds: Seconds between cycles (defaults to settings)
        """
        self.database = database or Database()
        self.interval = interval_seconds or get_settings().sync_interval_seconds
        self.scheduler = BlockingScheduler()
        self._cycle_count = 0
        self._shutdown_requested = False

    def _run_cycle(self) -> None:
        """Execute a single sync cycle."""
        self._cycle_count += 1
        timestamp = utcnow().strftime("%Y-%m-%d %H:%M:%S UTC")

        logger.info(f"[Cycle {self._cycle_count}] Starting at {timestamp}")

        try:
            results = run_sync_cycle(self.database)
        except Exception as e:
            logger.error(f"[Cycle {self._cycle_count}] Error: {e}")
            return

        imported = sum(r.imported_count for r in results)
        failed = [r for r in results if not r.success]
        logger.info(
            f"[Cycle {self._cycle_count}] Synced {len(results)} broker(s), "
            f"imported {imported} trade(s), {len(failed)} failure(s)"
        )
        for result in failed:
            logger.warning(f"[Cycle {self._cycle_count}] {result.broker_name}: {result.error}")

    def _handle_signal(self, signum, frame) -> None:
        """Handle shutdown signals gracefully."""
        if self._shutdown_requested:
            logger.warning("Received second shutdown signal, forcing exit...")
            sys.exit(1)

        logger.info("Received shutdown signal, stopping scheduler...")
        self._shutdown_requested = True
        self.stop()

    def start(self) -> None:
        """Start the scheduler (blocking)."""
        signal.signal(signal.SIGINT, self._handle_signal)
        signal.signal(signal.SIGTERM, self._handle_signal)

        self.scheduler.add_job(
            self._run_cycle,
            trigger=IntervalTrigger(seconds=self.interval),
            id="broker_sync",
            name="Broker Trade Sync",
            replace_existing=True,
            max_instances=1,
        )

        logger.info(f"Starting sync scheduler with {self.interval}s interval")
        logger.info("Press Ctrl+C to stop")

        self._run_cycle()

        try:
            self.scheduler.start()
        except (KeyboardInterrupt, SystemExit):
            pass
        finally:
            self.database.dispose()
            logger.info("Scheduler stopped")

    def stop(self) -> None:
        """Stop the scheduler."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler shutdown complete")

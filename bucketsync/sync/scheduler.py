"""Periodic sync cycles on a cron schedule.

This module provides:
- ``SyncScheduler``, which runs one cycle right away and then one per cron
  trigger, until it is stopped
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from ..exceptions import CycleInProgressError, SyncConfigError

if TYPE_CHECKING:
    from .engine import SyncEngine
    from .outcome import CycleReport

logger = logging.getLogger(__name__)


class SyncScheduler:
    """Triggers ``SyncEngine.run_cycle`` on a cron schedule.

    Shutdown is cooperative: ``stop()`` (or setting the stop event) prevents
    further cycles, while a cycle already running finishes normally. A
    trigger that fires during a running cycle is skipped.
    """

    def __init__(
        self,
        engine: SyncEngine,
        cron_expression: str,
        stop_event: threading.Event | None = None,
        run_immediately: bool = True,
    ) -> None:
        """Initialize the scheduler.

        Args:
            engine: Engine whose cycles are triggered.
            cron_expression: Standard 5-field crontab expression.
            stop_event: Event that ends ``run_forever`` when set.
            run_immediately: Run one cycle on ``start()`` before the first
                trigger.

        Raises:
            SyncConfigError: If the cron expression is invalid.
        """
        try:
            self._trigger = CronTrigger.from_crontab(cron_expression)
        except ValueError as e:
            raise SyncConfigError(
                f"Invalid cron schedule {cron_expression!r}: {e}"
            ) from e
        self._engine = engine
        self._cron_expression = cron_expression
        self._stop_event = stop_event or threading.Event()
        self._run_immediately = run_immediately
        self._scheduler: BackgroundScheduler | None = None
        self.last_report: CycleReport | None = None
        self.cycles_run = 0

    @property
    def stopped(self) -> bool:
        """True once a stop was requested."""
        return self._stop_event.is_set()

    def _cycle_job(self) -> None:
        """Job function for a scheduled sync cycle."""
        if self._stop_event.is_set():
            return
        logger.info("Running sync...")
        try:
            report = self._engine.run_cycle()
        except CycleInProgressError as e:
            logger.warning("Skipping scheduled sync: %s", e)
            return
        except Exception:
            logger.exception("Error during scheduled sync")
            return
        self.last_report = report
        self.cycles_run += 1
        if report.success:
            logger.info("Sync completed successfully")
        else:
            logger.error("Sync failed: %s", report.fatal or "upload errors occurred")

    def start(self) -> None:
        """Run the first cycle (if requested) and start the scheduler."""
        if self._scheduler is not None:
            return  # Already running

        if self._run_immediately:
            self._cycle_job()
        if self._stop_event.is_set():
            return

        self._scheduler = BackgroundScheduler()
        self._scheduler.add_job(
            self._cycle_job,
            trigger=self._trigger,
            id="sync_cycle",
            name="Sync cycle",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self._scheduler.start()
        logger.info("Scheduler started with cron schedule: %s", self._cron_expression)

    def stop(self) -> None:
        """Stop scheduling new cycles."""
        self._stop_event.set()
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
            logger.info("Scheduler stopped")

    def run_forever(self, poll_interval: float = 1.0) -> None:
        """Start and block until ``stop()`` is called or the stop event is set.

        Args:
            poll_interval: Seconds between checks of the stop event.
        """
        self.start()
        try:
            while not self._stop_event.wait(poll_interval):
                pass
        finally:
            self.stop()

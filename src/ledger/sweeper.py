"""Periodic ledger maintenance on an APScheduler background thread."""

from typing import Optional

import structlog
from apscheduler.events import EVENT_JOB_ERROR
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .ledger import PredictionLedger
from .models import StorageFailure, SweepReport

logger = structlog.get_logger().bind(source="sweeper")

JOB_ID = "ledger_sweep"


class SweepScheduler:
    """Runs PredictionLedger.sweep_expired every interval_seconds."""

    def __init__(self, ledger: PredictionLedger, interval_seconds: int = 60):
        self.ledger = ledger
        self.interval_seconds = interval_seconds
        self.scheduler: Optional[BackgroundScheduler] = None

    @property
    def running(self) -> bool:
        return self.scheduler is not None and self.scheduler.running

    def _on_job_error(self, event):
        logger.error("sweep.job_error", job_id=event.job_id, error=str(event.exception))

    def run_now(self) -> SweepReport | StorageFailure:
        """Run one sweep synchronously."""
        result = self.ledger.sweep_expired()
        if isinstance(result, StorageFailure):
            logger.warning("sweep.failed", detail=result.detail)
        return result

    def start(self):
        """Start the background scheduler. No-op if already running."""
        if self.running:
            return
        self.scheduler = BackgroundScheduler()
        self.scheduler.add_listener(self._on_job_error, EVENT_JOB_ERROR)
        self.scheduler.add_job(
            self.run_now,
            IntervalTrigger(seconds=self.interval_seconds),
            id=JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.start()
        logger.info("sweep.started", interval_seconds=self.interval_seconds)

    def stop(self):
        if self.scheduler and self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("sweep.stopped")
        self.scheduler = None

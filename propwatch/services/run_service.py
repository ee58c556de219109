"""Run bookkeeping: the single-flight guard and run lifecycle records."""

import uuid
from datetime import datetime, timedelta
from typing import List, Optional

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from propwatch.config import settings
from propwatch.core.exceptions import PersistenceError, RunAlreadyActiveError
from propwatch.models.scraper_run import RunStatus, ScraperRun
from propwatch.services.reconcile import utcnow

logger = structlog.get_logger(__name__)


class RunService:
    """Creates, finalizes and queries ScraperRun records.

    At most one RUNNING run exists at a time. has_running_run() is the
    cheap pre-check; create_run() is the authoritative one, backed by the
    partial unique index on scraper_runs.status.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.logger = logger.bind(service="run_service")

    async def has_running_run(self) -> bool:
        result = await self.db.execute(
            select(ScraperRun.id).where(ScraperRun.status == RunStatus.RUNNING.value).limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def create_run(self, filters_snapshot: dict, started_at: Optional[datetime] = None) -> ScraperRun:
        """Insert a new RUNNING run.

        Raises:
            RunAlreadyActiveError: If another RUNNING run already exists
        """
        run = ScraperRun(
            started_at=started_at or utcnow(),
            status=RunStatus.RUNNING.value,
            filters_snapshot=filters_snapshot,
            source_counts={},
        )
        self.db.add(run)
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise RunAlreadyActiveError() from e

        self.logger.info("run_created", run_id=str(run.id))
        return run

    async def complete_run(self, run_id: uuid.UUID, counters: dict) -> ScraperRun:
        """Mark a run COMPLETED and store its aggregate counters.

        Args:
            run_id: Run to finalize
            counters: total_found, new_listings, updated_listings, price_changes,
                filtered_out, errors and source_counts
        """
        run = await self._get_running(run_id)
        for name, value in counters.items():
            setattr(run, name, value)
        run.status = RunStatus.COMPLETED.value
        run.finished_at = utcnow()
        await self.db.commit()

        self.logger.info("run_completed", run_id=str(run_id), **{k: v for k, v in counters.items() if k != "source_counts"})
        return run

    async def fail_run(self, run_id: uuid.UUID, message: str, details: Optional[str] = None) -> ScraperRun:
        """Mark a run FAILED with a truncated message and the full details."""
        # A failed statement may have left the transaction unusable
        await self.db.rollback()
        run = await self._get_running(run_id)
        run.status = RunStatus.FAILED.value
        run.finished_at = utcnow()
        run.error_message = (message or "")[: settings.RUN_ERROR_MESSAGE_MAX_LENGTH]
        run.error_details = details
        await self.db.commit()

        self.logger.warning("run_failed", run_id=str(run_id), error_message=run.error_message)
        return run

    async def reap_stale_runs(self, older_than: Optional[timedelta] = None) -> int:
        """Mark RUNNING runs started before now - older_than as FAILED.

        Cleans up runs orphaned by a crashed process so they don't block the
        single-flight guard forever.

        Returns:
            Number of runs reaped
        """
        if older_than is None:
            if settings.STALE_RUN_TIMEOUT_MINUTES <= 0:
                return 0
            older_than = timedelta(minutes=settings.STALE_RUN_TIMEOUT_MINUTES)

        now = utcnow()
        result = await self.db.execute(
            update(ScraperRun)
            .where(
                ScraperRun.status == RunStatus.RUNNING.value,
                ScraperRun.started_at < now - older_than,
            )
            .values(
                status=RunStatus.FAILED.value,
                finished_at=now,
                error_message="Run abandoned: still RUNNING after the staleness timeout",
            )
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

        reaped = result.rowcount or 0
        if reaped:
            self.logger.warning("stale_runs_reaped", count=reaped, older_than_minutes=older_than.total_seconds() / 60)
        return reaped

    async def get_last_run(self) -> Optional[ScraperRun]:
        result = await self.db.execute(select(ScraperRun).order_by(ScraperRun.started_at.desc()).limit(1))
        return result.scalar_one_or_none()

    async def get_run_history(self, limit: int = 20) -> List[ScraperRun]:
        """Most recent runs first."""
        result = await self.db.execute(select(ScraperRun).order_by(ScraperRun.started_at.desc()).limit(limit))
        return list(result.scalars().all())

    async def _get_running(self, run_id: uuid.UUID) -> ScraperRun:
        run = await self.db.get(ScraperRun, run_id, populate_existing=True)
        if run is None:
            raise PersistenceError(f"run {run_id} not found")
        if run.status != RunStatus.RUNNING.value:
            # Terminal runs are never resurrected or rewritten
            raise PersistenceError(f"run {run_id} is already {run.status}")
        return run

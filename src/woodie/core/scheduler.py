"""Batch scheduler for periodic review maintenance.

Runs four named jobs on cron expressions (evaluated in the review timezone):
- daily-stats-reset: zeroed daily_review_stats rows for every active user
- daily-review-calculation: today's target review count per user
- cleanup-expired-schedules: purge old schedules, history and stats
- prepare-review-reminders: users with reviews due by end of tomorrow

Each job loop is an asyncio task; the job body runs in a worker thread.
A failed scheduled run is retried once after retry_delay_seconds.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable
from zoneinfo import ZoneInfo

import structlog
from croniter import croniter

from woodie.config import SchedulerConfig, load_app_config
from woodie.core import review_repository
from woodie.db.users_repository import list_active_user_ids
from woodie.utils.dates import end_of_day, local_date, to_iso, utc_now

logger = structlog.get_logger(__name__)


class UnknownJobError(KeyError):
    """Raised when a job name is not registered."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(name)

    def __str__(self) -> str:
        return f"Unknown job: {self.name}"


# =============================================================================
# JOBS
# =============================================================================


def daily_stats_reset(now: datetime | None = None) -> dict[str, Any]:
    """Create today's zeroed statistics row for every active user."""
    now = now or utc_now()
    today = local_date(now, load_app_config().review.timezone)
    user_ids = list_active_user_ids()
    created = review_repository.ensure_daily_stats_rows(user_ids, today)
    return {"date": today.isoformat(), "users": len(user_ids), "created": created}


def daily_review_calculation(now: datetime | None = None) -> dict[str, Any]:
    """Store today's review target count for users with something due."""
    now = now or utc_now()
    today = local_date(now, load_app_config().review.timezone)
    user_ids = list_active_user_ids()

    updated = 0
    for user_id in user_ids:
        due = review_repository.count_due_targets(user_id, now=now)
        if due > 0:
            review_repository.upsert_daily_target(user_id, today, due)
            updated += 1

    return {"date": today.isoformat(), "users": len(user_ids), "updated": updated}


def cleanup_expired_schedules(now: datetime | None = None) -> dict[str, Any]:
    """Delete completed schedules, history and stats past their retention."""
    now = now or utc_now()
    config = load_app_config()
    today = local_date(now, config.review.timezone)
    retention = config.scheduler

    return review_repository.purge_expired(
        schedules_before=today - timedelta(days=retention.schedule_retention_days),
        history_before=now - timedelta(days=retention.history_retention_days),
        stats_before=today - timedelta(days=retention.stats_retention_days),
    )


def prepare_review_reminders(now: datetime | None = None) -> dict[str, Any]:
    """Collect users with active reviews due by the end of tomorrow.

    Delivery of reminders is left to an external notifier; the job only
    logs and returns the recipients.
    """
    now = now or utc_now()
    until = end_of_day(now + timedelta(days=1), load_app_config().review.timezone)
    user_ids = review_repository.users_due_by(until)
    logger.info("scheduler.reminders_prepared", count=len(user_ids), until=to_iso(until))
    return {"users": user_ids, "count": len(user_ids)}


JOBS: dict[str, Callable[..., dict[str, Any]]] = {
    "daily-stats-reset": daily_stats_reset,
    "daily-review-calculation": daily_review_calculation,
    "cleanup-expired-schedules": cleanup_expired_schedules,
    "prepare-review-reminders": prepare_review_reminders,
}


# =============================================================================
# SCHEDULER
# =============================================================================


@dataclass
class ScheduledJob:
    """A registered job and its run bookkeeping."""

    name: str
    cron: str
    func: Callable[..., dict[str, Any]]
    task: asyncio.Task | None = field(default=None, repr=False)
    last_run_at: str | None = None
    last_status: str | None = None  # success | failed
    last_error: str | None = None
    last_duration_ms: int | None = None
    run_count: int = 0
    failure_count: int = 0

    @property
    def running(self) -> bool:
        return self.task is not None and not self.task.done()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API response."""
        return {
            "name": self.name,
            "cron": self.cron,
            "running": self.running,
            "lastRunAt": self.last_run_at,
            "lastStatus": self.last_status,
            "lastError": self.last_error,
            "lastDurationMs": self.last_duration_ms,
            "runCount": self.run_count,
            "failureCount": self.failure_count,
        }


class ReviewScheduler:
    """In-process cron scheduler for the review batch jobs.

    Jobs are registered from config at construction; initialize() starts
    one asyncio loop per job and must be called from a running event loop.
    """

    def __init__(
        self,
        config: SchedulerConfig | None = None,
        timezone: str | None = None,
    ):
        app_config = load_app_config()
        self._config = config or app_config.scheduler
        self._tz = ZoneInfo(timezone or app_config.review.timezone)
        self._jobs: dict[str, ScheduledJob] = {}
        self._retries: set[asyncio.Task] = set()
        self._initialized = False

        for name, cron in self._config.jobs.items():
            func = JOBS.get(name)
            if func is None:
                logger.warning("scheduler.unknown_job_configured", job=name)
                continue
            if not croniter.is_valid(cron):
                raise ValueError(f"Invalid cron expression for {name}: {cron!r}")
            self._jobs[name] = ScheduledJob(name=name, cron=cron, func=func)

    @property
    def job_names(self) -> list[str]:
        return list(self._jobs)

    def _get_job(self, name: str) -> ScheduledJob:
        job = self._jobs.get(name)
        if job is None:
            raise UnknownJobError(name)
        return job

    def next_run_time(self, name: str, after: datetime | None = None) -> datetime:
        """Next fire time of a job in the scheduler timezone."""
        job = self._get_job(name)
        base = (after or datetime.now(self._tz)).astimezone(self._tz)
        return croniter(job.cron, base).get_next(datetime)

    def initialize(self) -> None:
        """Start a loop task for every registered job.

        Calling it again while the loops run does nothing.
        """
        if self._initialized:
            return

        loop = asyncio.get_running_loop()
        for job in self._jobs.values():
            job.task = loop.create_task(self._job_loop(job), name=f"woodie-job-{job.name}")

        self._initialized = True
        logger.info("scheduler.initialized", jobs=self.job_names)

    async def _job_loop(self, job: ScheduledJob) -> None:
        while True:
            now = datetime.now(self._tz)
            fire_at = croniter(job.cron, now).get_next(datetime)
            await asyncio.sleep(max((fire_at - now).total_seconds(), 0))
            await self._run_scheduled(job)

    async def _run(self, job: ScheduledJob) -> dict[str, Any]:
        """Run a job once in a worker thread and record the outcome."""
        started = time.monotonic()
        job.last_run_at = to_iso(utc_now())
        job.run_count += 1
        logger.info("scheduler.job_started", job=job.name)

        try:
            result = await asyncio.to_thread(job.func)
        except Exception as exc:
            job.last_status = "failed"
            job.last_error = str(exc)
            job.failure_count += 1
            job.last_duration_ms = int((time.monotonic() - started) * 1000)
            raise

        job.last_status = "success"
        job.last_error = None
        job.last_duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            "scheduler.job_completed",
            job=job.name,
            duration_ms=job.last_duration_ms,
            result=result,
        )
        return result

    async def _run_scheduled(self, job: ScheduledJob) -> None:
        try:
            await self._run(job)
        except Exception:
            logger.exception("scheduler.job_failed", job=job.name)
            retry = asyncio.create_task(self._retry(job))
            self._retries.add(retry)
            retry.add_done_callback(self._retries.discard)

    async def _retry(self, job: ScheduledJob) -> None:
        await asyncio.sleep(self._config.retry_delay_seconds)
        logger.info("scheduler.job_retrying", job=job.name)
        try:
            await self._run(job)
        except Exception:
            logger.exception("scheduler.job_retry_failed", job=job.name)

    async def run_task_manually(self, name: str) -> dict[str, Any]:
        """Run a job immediately, outside its schedule.

        Raises:
            UnknownJobError: If no job has that name
            Exception: Whatever the job raised; a manual run is not retried
        """
        job = self._get_job(name)
        logger.info("scheduler.manual_run", job=name)
        return await self._run(job)

    def stop_task(self, name: str) -> bool:
        """Cancel a job loop.

        Returns:
            True if a running loop was cancelled, False otherwise
        """
        job = self._jobs.get(name)
        if job is None or not job.running:
            return False
        job.task.cancel()
        logger.info("scheduler.job_stopped", job=name)
        return True

    def stop_all(self) -> None:
        """Cancel every job loop and pending retry."""
        for name in self._jobs:
            self.stop_task(name)
        for retry in list(self._retries):
            retry.cancel()
        self._retries.clear()
        self._initialized = False
        logger.info("scheduler.stopped")

    def get_task_status(self) -> list[dict[str, Any]]:
        """Status of every registered job."""
        return [job.to_dict() for job in self._jobs.values()]


# Global scheduler instance
_scheduler: ReviewScheduler | None = None


def get_scheduler() -> ReviewScheduler:
    """Get the global scheduler instance."""
    global _scheduler
    if _scheduler is None:
        _scheduler = ReviewScheduler()
    return _scheduler


def reset_scheduler() -> None:
    """Stop and drop the global scheduler (for testing)."""
    global _scheduler
    if _scheduler is not None:
        _scheduler.stop_all()
    _scheduler = None

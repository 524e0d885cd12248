"""
APScheduler-backed job scheduler for the hourly, daily and weekly jobs.

Daily and weekly jobs fire first at the next configured UTC instant and then
repeat at a fixed 24 h / 7 d interval from that first firing. The schedule is
not re-anchored to wall-clock time between restarts.
"""

import asyncio
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from regsync.exceptions import SchedulerCallbackError
from regsync.scheduler.error_handler import LISTENER_MASK, job_event_listener
from regsync.scheduler.timing import next_daily_run, next_weekly_run
from regsync.sources.models import Severity, utcnow

logger = logging.getLogger(__name__)

HOURLY = "hourly"
DAILY = "daily"
WEEKLY = "weekly"


class JobState(str, Enum):
    IDLE = "idle"
    WAITING = "waiting"
    RUNNING = "running"


@dataclass
class ScheduledJob:
    """A job body plus its failure-alert policy."""

    job_id: str
    name: str
    callback: Callable[[], Any]
    alert_on_failure: bool
    failure_title: str


def _default_scheduler() -> AsyncIOScheduler:
    return AsyncIOScheduler(timezone=timezone.utc)


class SyncScheduler:
    """Triggers the orchestration jobs on fixed cadences.

    - hourly: runs immediately on start, then every ``hourly_interval_minutes``.
    - daily: first at the next ``daily_time`` (UTC), then every 24 hours.
    - weekly: first at the next ``weekly_time`` (day 0=Sunday), then every 7 days.

    Exceptions raised by a job body are caught here, logged, and escalated to
    the notifier when that job's ``alert_on_failure`` flag is set. A job never
    overlaps itself.

    Args:
        daily_callback: Body of the daily job (full sync).
        hourly_callback: Body of the hourly job (review check).
        weekly_callback: Body of the weekly job (digest generation).
        notifier: Notifier for failure alerts.
        recipients: Alert recipients.
        daily_time: (hour, minute) UTC.
        weekly_time: (day, hour, minute) UTC with day 0=Sunday.
        hourly_interval_minutes: Interval of the hourly job.
        alert_on_failure: Per-job override of the alerting policy.
        misfire_grace_time: Seconds a late firing is still executed.
        clock: Callable returning the current aware UTC datetime.
        scheduler_factory: Creates the APScheduler instance on each start().
    """

    def __init__(
        self,
        daily_callback: Callable[[], Any],
        hourly_callback: Callable[[], Any],
        weekly_callback: Callable[[], Any],
        notifier=None,
        recipients: Optional[List[str]] = None,
        daily_time: Tuple[int, int] = (6, 0),
        weekly_time: Tuple[int, int, int] = (1, 9, 0),
        hourly_interval_minutes: int = 60,
        alert_on_failure: Optional[Dict[str, bool]] = None,
        misfire_grace_time: int = 3600,
        clock: Callable[[], datetime] = utcnow,
        scheduler_factory: Callable[[], AsyncIOScheduler] = _default_scheduler,
    ) -> None:
        alerts = {DAILY: True, HOURLY: False, WEEKLY: True}
        alerts.update(alert_on_failure or {})

        self.jobs: Dict[str, ScheduledJob] = {
            HOURLY: ScheduledJob(
                HOURLY, "Hourly Review Check", hourly_callback, alerts[HOURLY],
                "Hourly Review Check Failed",
            ),
            DAILY: ScheduledJob(
                DAILY, "Daily Data Collection", daily_callback, alerts[DAILY],
                "Daily Data Collection Failed",
            ),
            WEEKLY: ScheduledJob(
                WEEKLY, "Weekly Digest Generation", weekly_callback, alerts[WEEKLY],
                "Weekly Digest Generation Failed",
            ),
        }
        self.notifier = notifier
        self.recipients = list(recipients or [])
        self.daily_time = daily_time
        self.weekly_time = weekly_time
        self.hourly_interval = timedelta(minutes=hourly_interval_minutes)
        self.misfire_grace_time = misfire_grace_time
        self._clock = clock
        self._scheduler_factory = scheduler_factory
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._states: Dict[str, JobState] = {job_id: JobState.IDLE for job_id in self.jobs}
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._scheduler is not None

    def plan(self, now: Optional[datetime] = None) -> Dict[str, datetime]:
        """First-run instant of each job if the scheduler started at ``now``."""
        now = now or self._clock()
        hour, minute = self.daily_time
        day, w_hour, w_minute = self.weekly_time
        return {
            HOURLY: now,
            DAILY: next_daily_run(now, hour, minute),
            WEEKLY: next_weekly_run(now, day, w_hour, w_minute),
        }

    def start(self) -> bool:
        """Start all job timers. Returns False if already running."""
        if self._scheduler is not None:
            logger.debug("Scheduler already running")
            return False

        now = self._clock()
        plan = self.plan(now)
        intervals = {
            HOURLY: self.hourly_interval,
            DAILY: timedelta(hours=24),
            WEEKLY: timedelta(days=7),
        }

        scheduler = self._scheduler_factory()
        for job_id, job in self.jobs.items():
            scheduler.add_job(
                self.run_job,
                IntervalTrigger(
                    seconds=int(intervals[job_id].total_seconds()),
                    start_date=plan[job_id],
                    timezone=timezone.utc,
                ),
                args=[job_id],
                id=job_id,
                name=job.name,
                next_run_time=plan[job_id],
                max_instances=1,
                coalesce=True,
                misfire_grace_time=self.misfire_grace_time,
                replace_existing=True,
            )
            logger.info("%s scheduled: first run %s", job.name, plan[job_id].isoformat())

        scheduler.add_listener(job_event_listener, LISTENER_MASK)
        scheduler.start()
        self._scheduler = scheduler

        with self._lock:
            for job_id in self.jobs:
                self._states[job_id] = JobState.WAITING

        logger.info("Scheduler started with %d jobs", len(self.jobs))
        return True

    def stop(self) -> None:
        """Cancel all pending timers and return every job to idle."""
        scheduler, self._scheduler = self._scheduler, None
        if scheduler is not None:
            scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")
        with self._lock:
            for job_id in self.jobs:
                self._states[job_id] = JobState.IDLE

    def job_states(self) -> Dict[str, JobState]:
        with self._lock:
            return dict(self._states)

    def next_runs(self) -> List[Dict[str, Any]]:
        """Job list with next fire times, for health reporting."""
        states = self.job_states()
        jobs = []
        for job_id, job in self.jobs.items():
            next_run = None
            if self._scheduler is not None:
                aps_job = self._scheduler.get_job(job_id)
                if aps_job is not None and aps_job.next_run_time:
                    next_run = aps_job.next_run_time.isoformat()
            jobs.append(
                {"id": job_id, "name": job.name, "state": states[job_id].value, "next_run": next_run}
            )
        return jobs

    async def run_job(self, job_id: str) -> bool:
        """Execute one job body in a worker thread.

        Returns True on success, False if the job failed or was already running.
        """
        job = self.jobs[job_id]
        with self._lock:
            if self._states[job_id] == JobState.RUNNING:
                logger.warning("%s already running, skipping", job.name)
                return False
            self._states[job_id] = JobState.RUNNING

        logger.info("%s started", job.name)
        try:
            await asyncio.to_thread(job.callback)
            logger.info("%s complete", job.name)
            return True
        except Exception as e:
            error = SchedulerCallbackError(job_id, e)
            logger.exception("%s", error)
            if job.alert_on_failure:
                await self._alert(job, e)
            return False
        finally:
            with self._lock:
                self._states[job_id] = (
                    JobState.WAITING if self._scheduler is not None else JobState.IDLE
                )

    async def _alert(self, job: ScheduledJob, error: Exception) -> None:
        if self.notifier is None:
            return
        try:
            await asyncio.to_thread(
                self.notifier.notify,
                self.recipients,
                job.failure_title,
                str(error) or error.__class__.__name__,
                Severity.URGENT,
            )
        except Exception:
            logger.exception("Failed to send failure alert for job '%s'", job.job_id)

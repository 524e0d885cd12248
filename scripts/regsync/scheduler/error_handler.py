"""
APScheduler event listener that logs skipped, missed and failed job executions.

Job bodies are wrapped by SyncScheduler.run_job, which already handles
exceptions and alerting; this listener covers what APScheduler itself drops.
"""

import logging

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_MAX_INSTANCES, EVENT_JOB_MISSED

logger = logging.getLogger(__name__)

LISTENER_MASK = EVENT_JOB_ERROR | EVENT_JOB_MISSED | EVENT_JOB_MAX_INSTANCES


def job_event_listener(event):
    """Handle APScheduler job events that never reach the job body."""
    job_id = event.job_id

    if event.code == EVENT_JOB_MAX_INSTANCES:
        logger.warning("Scheduled job '%s' still running, skipping overlapping run", job_id)
    elif event.code == EVENT_JOB_MISSED:
        logger.warning(
            "Scheduled job '%s' missed its run time %s", job_id, event.scheduled_run_time
        )
    elif event.code == EVENT_JOB_ERROR:
        traceback_str = str(event.traceback) if event.traceback else ""
        logger.error(
            "Scheduled job '%s' failed: %s\n%s",
            job_id,
            event.exception,
            traceback_str,
        )

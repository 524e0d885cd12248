"""
Scheduled job bodies.

Each job is a plain synchronous function taking the ServiceContext; the
SyncScheduler runs it in a worker thread and handles exceptions.
"""

import logging
from datetime import timedelta

from regsync.digest import build_digest
from regsync.exceptions import SyncFailedError
from regsync.sources.models import Severity

logger = logging.getLogger(__name__)

DIGEST_LOOKBACK = timedelta(days=7)


def daily_sync_job(context):
    """Full sync of all active sources.

    Raises:
        SyncFailedError: If sources were invoked and every one of them failed.
    """
    run = context.orchestrator.sync_all(active_only=True)
    logger.info("Daily sync: %s", run)

    attempted = [o for o in run.outcomes if not o.cancelled]
    if attempted and all(not o.success for o in attempted):
        raise SyncFailedError(
            f"All {len(attempted)} sources failed",
            {"errors": "; ".join(f"{o.source_id}: {o.error}" for o in attempted[:5])},
        )
    return run


def hourly_review_check_job(context):
    """Alert operators about stored records waiting too long for review.

    Returns:
        Number of overdue records.
    """
    overdue_hours = context.config.get("review.overdue_hours", 24)
    cutoff = context.clock() - timedelta(hours=overdue_hours)
    overdue = context.store.pending_review(older_than=cutoff)

    if not overdue:
        logger.debug("No records overdue for review")
        return 0

    logger.info("%d record(s) overdue for review", len(overdue))
    context.notifier.notify(
        context.recipients,
        "Urgent Reviews Pending",
        f"{len(overdue)} record(s) have been pending review for more than "
        f"{overdue_hours} hours and require immediate attention.",
        Severity.URGENT,
    )
    return len(overdue)


def weekly_digest_job(context):
    """Build the weekly digest from the last 7 days of stored records.

    Returns:
        The stored Digest, or None if there was nothing to report.
    """
    now = context.clock()
    records = context.store.recent(since=now - DIGEST_LOOKBACK)

    if not records:
        logger.info("No records this week, skipping digest generation")
        return None

    digest = build_digest(records, generated_at=now)
    context.store.add_digest(digest)
    logger.info("Weekly digest generated: %s (%d records)", digest.title, digest.total)

    context.notifier.notify(
        context.recipients,
        "Weekly Digest Ready for Review",
        f'Weekly digest "{digest.title}" has been generated and is ready for review and approval.',
        Severity.MEDIUM,
    )
    return digest

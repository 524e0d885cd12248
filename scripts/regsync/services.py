"""Explicitly constructed service context for the orchestration core.

Entry points (CLI, web lifespan) build one ServiceContext at startup and pass
it down; nothing in the core is a module-level singleton, so tests and
multiple independent orchestration instances can coexist in one process.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

from .config import config as default_config
from .notifications import Notifier, build_notifier
from .orchestrator import SyncOrchestrator
from .scheduler.jobs import daily_sync_job, hourly_review_check_job, weekly_digest_job
from .scheduler.setup import SyncScheduler
from .scheduler.timing import day_index, parse_time
from .sources.invoker import SourceInvoker
from .sources.models import utcnow
from .sources.rate_limit import RateLimiter
from .sources.registry import SourceRegistry
from .storage import RecordStore, build_store

logger = logging.getLogger(__name__)


@dataclass
class ServiceContext:
    """Everything a running orchestration instance needs."""

    config: object
    registry: SourceRegistry
    rate_limiter: RateLimiter
    invoker: SourceInvoker
    orchestrator: SyncOrchestrator
    store: RecordStore
    notifier: Notifier
    recipients: List[str] = field(default_factory=list)
    clock: Callable[[], datetime] = utcnow
    scheduler: Optional[SyncScheduler] = None


def build_context(
    cfg=None,
    registry: Optional[SourceRegistry] = None,
    store: Optional[RecordStore] = None,
    notifier: Optional[Notifier] = None,
    invoker: Optional[SourceInvoker] = None,
    clock: Callable[[], datetime] = utcnow,
) -> ServiceContext:
    """Wire registry, rate limiter, invoker, orchestrator and scheduler together.

    Any collaborator can be passed in to replace the configured default.

    Raises:
        ConfigurationError: If the configured source list is invalid.
    """
    cfg = cfg or default_config
    if registry is None:
        registry = SourceRegistry.from_config(cfg)
    store = store or build_store(cfg)
    registry.apply_statuses(store.load_source_statuses())
    registry.on_status_change = store.save_source_status
    notifier = notifier or build_notifier(cfg)
    recipients = cfg.recipients

    if invoker is None:
        rate_limiter = RateLimiter(
            registry,
            notifier=notifier,
            recipients=recipients,
            error_threshold=cfg.get("sync.error_threshold", 5),
            clock=clock,
        )
        invoker = SourceInvoker(
            rate_limiter,
            timeout=cfg.get("sync.request_timeout", 30),
            api_keys=cfg.api_key_for,
            user_agent=cfg.get("sync.user_agent", "RegSync/1.0"),
        )
    rate_limiter = invoker.rate_limiter

    orchestrator = SyncOrchestrator(
        registry,
        invoker,
        store=store,
        max_workers=cfg.get("sync.max_workers", 5),
        clock=clock,
    )

    context = ServiceContext(
        config=cfg,
        registry=registry,
        rate_limiter=rate_limiter,
        invoker=invoker,
        orchestrator=orchestrator,
        store=store,
        notifier=notifier,
        recipients=recipients,
        clock=clock,
    )
    context.scheduler = build_scheduler(context)

    logger.info("Service context ready with %d sources", len(registry))
    return context


def build_scheduler(context: ServiceContext) -> SyncScheduler:
    """Create the SyncScheduler from ``scheduler.*`` config."""
    cfg = context.config
    daily_hour, daily_minute = parse_time(cfg.get("scheduler.daily_time", "06:00"))
    weekly_hour, weekly_minute = parse_time(cfg.get("scheduler.weekly_time", "09:00"))
    weekly_day = day_index(cfg.get("scheduler.weekly_day", "monday"))

    return SyncScheduler(
        daily_callback=lambda: daily_sync_job(context),
        hourly_callback=lambda: hourly_review_check_job(context),
        weekly_callback=lambda: weekly_digest_job(context),
        notifier=context.notifier,
        recipients=context.recipients,
        daily_time=(daily_hour, daily_minute),
        weekly_time=(weekly_day, weekly_hour, weekly_minute),
        hourly_interval_minutes=cfg.get("scheduler.hourly_interval_minutes", 60),
        alert_on_failure=cfg.get("scheduler.alert_on_failure", {}),
        misfire_grace_time=cfg.get("scheduler.misfire_grace_time", 3600),
        clock=context.clock,
    )

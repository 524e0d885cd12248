"""
Sync orchestrator: fans invocations out across sources and aggregates a SyncRun.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Set

from regsync.sources.invoker import SourceInvoker
from regsync.sources.models import (
    DataSource,
    InvocationRequest,
    RegulatoryRecord,
    SourceKind,
    SourceOutcome,
    SourceStatus,
    SyncRun,
    utcnow,
)
from regsync.sources.records import normalize_records
from regsync.sources.registry import SourceRegistry
from regsync.storage import RecordStore

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 5

Converter = Callable[[DataSource, List[Any]], List[RegulatoryRecord]]


class SyncOrchestrator:
    """Runs one coordinated pass across a set of sources.

    Sources are dispatched in registry order (priority, then registration)
    to a bounded thread pool. A failing source never aborts the run.

    Args:
        registry: Source registry.
        invoker: Invoker performing single fetches.
        store: Persistence collaborator for normalised records (optional).
        converter: Turns raw payload items into RegulatoryRecords.
        max_workers: Concurrent invocations per run.
        clock: Callable returning the current aware UTC datetime.
    """

    def __init__(
        self,
        registry: SourceRegistry,
        invoker: SourceInvoker,
        store: Optional[RecordStore] = None,
        converter: Converter = normalize_records,
        max_workers: int = DEFAULT_MAX_WORKERS,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.registry = registry
        self.invoker = invoker
        self.store = store
        self.converter = converter
        self.max_workers = max_workers
        self._clock = clock
        self._runs_lock = threading.Lock()
        self._live_runs: Set[threading.Event] = set()

    def sync_one(self, source_id: str, request: Optional[InvocationRequest] = None) -> SyncRun:
        """Invoke exactly one source (manual/administrator trigger).

        Raises:
            NotFoundError: If the source id was never registered.
        """
        source = self.registry.get(source_id)
        run = SyncRun(started_at=self._clock())
        run.add(self._sync_source(source, request, None))
        run.completed_at = self._clock()
        logger.info("Manual sync of %s: %s", source_id, run)
        return run

    def sync_all(
        self,
        active_only: bool = True,
        request: Optional[InvocationRequest] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> SyncRun:
        """Invoke every active source (or every source) concurrently.

        Each call gets its own cancellation flag, so runs may overlap without
        one clearing a cancellation requested for another.
        """
        sources = self.registry.list_active() if active_only else self.registry.list_all()
        run_event = threading.Event()
        with self._runs_lock:
            self._live_runs.add(run_event)
        cancel = _AnyEvent(run_event, cancel_event)

        run = SyncRun(started_at=self._clock())
        logger.info(
            "Starting sync of %d sources (active_only=%s, workers=%d)",
            len(sources),
            active_only,
            self.max_workers,
        )

        try:
            with ThreadPoolExecutor(
                max_workers=self.max_workers, thread_name_prefix="regsync-sync"
            ) as executor:
                futures = [
                    executor.submit(self._sync_source, source, request, cancel)
                    for source in sources
                ]
                # Collect in dispatch order so outcomes line up with priority ordering
                for future in futures:
                    run.add(future.result())
        finally:
            with self._runs_lock:
                self._live_runs.discard(run_event)

        run.cancelled = any(o.cancelled for o in run.outcomes)
        run.completed_at = self._clock()
        logger.info("Sync complete: %s", run)
        return run

    def cancel(self) -> int:
        """Stop dispatching the remaining invocations of every run in flight.

        Runs started afterwards are unaffected. Returns the number of runs signalled.
        """
        with self._runs_lock:
            live = list(self._live_runs)
        for event in live:
            event.set()
        logger.info("Sync cancellation requested for %d run(s)", len(live))
        return len(live)

    def health_check(self) -> Dict[str, Any]:
        """Request the ``/health`` path of every active API source.

        Scraping sources publish feeds rather than a health path, and inactive
        or testing sources are not contacted; both are reported as ``skipped``.
        Checks go through the normal invocation path, so they count towards
        each checked source's error history.
        """
        details = []
        healthy = 0
        unhealthy = 0
        for source in self.registry.list_all():
            if source.kind == SourceKind.WEB_SCRAPING or source.status != SourceStatus.ACTIVE:
                details.append({"source_id": source.id, "status": "skipped"})
                continue

            result = self.invoker.invoke(source, InvocationRequest(path="/health", timeout=5))
            if result.success:
                healthy += 1
                details.append(
                    {
                        "source_id": source.id,
                        "status": "healthy",
                        "last_sync": source.last_sync.isoformat() if source.last_sync else None,
                    }
                )
            else:
                unhealthy += 1
                details.append(
                    {"source_id": source.id, "status": "unhealthy", "error": result.error}
                )
        return {
            "healthy": healthy,
            "unhealthy": unhealthy,
            "skipped": len(details) - healthy - unhealthy,
            "details": details,
        }

    def _sync_source(
        self,
        source: DataSource,
        request: Optional[InvocationRequest],
        cancel: Optional["_AnyEvent"],
    ) -> SourceOutcome:
        if cancel is not None and cancel.is_set():
            return SourceOutcome(source_id=source.id, success=False, cancelled=True)

        try:
            result = self.invoker.invoke(source, request)
        except Exception as e:
            # The invoker reports failures as results; this guards custom invokers
            logger.exception("Unexpected error invoking %s", source.id)
            return SourceOutcome(source_id=source.id, success=False, error=str(e))

        if not result.success:
            return SourceOutcome(
                source_id=source.id,
                success=False,
                error=result.error,
                rate_limited=result.rate_limited,
            )

        outcome = SourceOutcome(source_id=source.id, success=True, records=len(result.records))
        if self.store is not None and result.records:
            try:
                records = self.converter(source, result.records)
                outcome.stored = self.store.append(records)
            except Exception as e:
                logger.exception("Failed to store records from %s", source.id)
                outcome.error = f"storage failed: {e}"
        return outcome


class _AnyEvent:
    """Set when any of the wrapped events is set."""

    def __init__(self, *events: Optional[threading.Event]) -> None:
        self._events = [e for e in events if e is not None]

    def is_set(self) -> bool:
        return any(e.is_set() for e in self._events)

"""
Per-source quota tracking and failure-count deactivation.

This is a simplified circuit breaker: consecutive failures are counted and a
source is switched to ``inactive`` at the threshold. There is no half-open
probing; an operator reactivates the source explicitly.
"""

import logging
import threading
from datetime import datetime
from typing import Callable, Dict, List, Optional

from regsync.sources.models import RateLimitWindow, Severity, SourceStatus, utcnow
from regsync.sources.registry import SourceRegistry

logger = logging.getLogger(__name__)

DEFAULT_ERROR_THRESHOLD = 5
DEACTIVATION_MESSAGE = "Deactivating source due to repeated errors."


class RateLimiter:
    """Gates invocations and records failure history per source.

    Safe for concurrent use from the orchestrator's worker threads. The
    notifier is called outside the lock.

    Args:
        registry: Registry owning the DataSource objects whose state is updated.
        notifier: Notifier receiving deactivation alerts (optional).
        recipients: Alert recipients passed to the notifier.
        error_threshold: Consecutive failures before a source is deactivated.
        clock: Callable returning the current aware UTC datetime.
    """

    def __init__(
        self,
        registry: SourceRegistry,
        notifier=None,
        recipients: Optional[List[str]] = None,
        error_threshold: int = DEFAULT_ERROR_THRESHOLD,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.registry = registry
        self.notifier = notifier
        self.recipients = list(recipients or [])
        self.error_threshold = error_threshold
        self._clock = clock
        self._windows: Dict[str, RateLimitWindow] = {}
        self._lock = threading.Lock()

    def check_quota(self, source_id: str) -> bool:
        """Return True if the source may be invoked now."""
        now = self._clock()
        with self._lock:
            window = self._windows.get(source_id)
            if window is None:
                return True
            if window.expired(now):
                del self._windows[source_id]
                return True
            return window.remaining > 0

    def record_quota(self, source_id: str, remaining: int, reset_at: datetime) -> None:
        """Overwrite the quota window for a source (last write wins)."""
        with self._lock:
            self._windows[source_id] = RateLimitWindow(source_id, remaining, reset_at)
        logger.debug("Quota for %s: %d remaining until %s", source_id, remaining, reset_at)

    def get_window(self, source_id: str) -> Optional[RateLimitWindow]:
        with self._lock:
            return self._windows.get(source_id)

    def record_outcome(self, source_id: str, success: bool) -> None:
        """Fold one invocation outcome into the source's runtime state."""
        source = self.registry.get(source_id)
        deactivated = False

        with self._lock:
            if success:
                source.error_count = 0
                source.last_sync = self._clock()
            else:
                source.error_count += 1
                if (
                    source.error_count >= self.error_threshold
                    and source.status != SourceStatus.INACTIVE
                ):
                    source.status = SourceStatus.INACTIVE
                    deactivated = True
            error_count = source.error_count

        if not success:
            logger.warning("Source %s failed (%d consecutive errors)", source_id, error_count)
        if deactivated:
            logger.error("Deactivating source %s due to repeated errors", source_id)
            self.registry.persist_status(source.id, SourceStatus.INACTIVE)
            self._notify_deactivated(source.id, source.name, error_count)

    def reset(self, source_id: str) -> None:
        """Clear failure history and quota window, e.g. after operator reactivation."""
        source = self.registry.get(source_id)
        with self._lock:
            source.error_count = 0
            self._windows.pop(source_id, None)

    def _notify_deactivated(self, source_id: str, name: str, error_count: int) -> None:
        if self.notifier is None:
            return
        try:
            self.notifier.notify(
                self.recipients,
                f"Data Source Deactivated: {name}",
                DEACTIVATION_MESSAGE,
                Severity.HIGH,
            )
        except Exception:
            logger.exception(
                "Failed to send deactivation alert for %s (%d errors)", source_id, error_count
            )

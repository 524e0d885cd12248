"""
Source registry: the authoritative in-memory list of configured data sources.
"""

import logging
import threading
from typing import Any, Callable, Dict, Iterable, List, Optional

from regsync.exceptions import ConfigurationError, DuplicateSourceError, NotFoundError
from regsync.sources.models import DataSource, Priority, SourceKind, SourceStatus

logger = logging.getLogger(__name__)


class SourceRegistry:
    """Holds registered sources and provides lookup and filtering.

    Listing methods return sources ordered by priority (high, medium, low),
    ties broken by registration order. The registry performs no I/O itself;
    status changes are passed to ``on_status_change`` when one is set.
    """

    def __init__(
        self,
        sources: Optional[Iterable[DataSource]] = None,
        on_status_change: Optional[Callable[[str, SourceStatus], None]] = None,
    ) -> None:
        self._sources: Dict[str, DataSource] = {}
        self._lock = threading.Lock()
        self.on_status_change = on_status_change
        for source in sources or []:
            self.register(source)

    @classmethod
    def from_config(cls, cfg) -> "SourceRegistry":
        """Build a registry from the ``sources`` list of a Config."""
        registry = cls()
        registry.load_sources(cfg.sources)
        return registry

    def load_sources(self, entries: Iterable[Dict[str, Any]]) -> int:
        """Register sources from configuration mappings.

        Raises:
            ConfigurationError: On malformed or duplicate entries.
        """
        count = 0
        for entry in entries:
            if not isinstance(entry, dict):
                raise ConfigurationError("Source entries must be mappings", {"entry": entry})
            self.register(DataSource.from_dict(entry))
            count += 1
        return count

    def register(self, source: DataSource) -> None:
        with self._lock:
            if source.id in self._sources:
                raise DuplicateSourceError(source.id)
            self._sources[source.id] = source
        logger.info("Registered data source: %s (%s)", source.name, source.kind.value)

    def get(self, source_id: str) -> DataSource:
        with self._lock:
            source = self._sources.get(source_id)
        if source is None:
            raise NotFoundError(source_id)
        return source

    def __contains__(self, source_id: str) -> bool:
        return source_id in self._sources

    def __len__(self) -> int:
        return len(self._sources)

    def _ordered(self) -> List[DataSource]:
        # dict preserves insertion order and sorted() is stable
        with self._lock:
            sources = list(self._sources.values())
        return sorted(sources, key=lambda s: s.priority.rank)

    def list_all(self) -> List[DataSource]:
        return self._ordered()

    def list_active(self) -> List[DataSource]:
        return [s for s in self._ordered() if s.status == SourceStatus.ACTIVE]

    def list_by_region(self, region: str) -> List[DataSource]:
        return [s for s in self._ordered() if s.region == region]

    def list_unauthenticated(self) -> List[DataSource]:
        """Sources that need credentials and are still waiting in ``testing``."""
        return [
            s for s in self._ordered() if s.requires_auth and s.status == SourceStatus.TESTING
        ]

    def group_by_region(self) -> Dict[str, List[DataSource]]:
        """Active sources grouped by region label."""
        groups: Dict[str, List[DataSource]] = {}
        for source in self.list_active():
            groups.setdefault(source.region, []).append(source)
        return groups

    def set_status(self, source_id: str, status: SourceStatus) -> DataSource:
        """Operator action: change a source's status.

        Moving a source back to ``active`` also clears its error count.
        """
        source = self.get(source_id)
        with self._lock:
            previous = source.status
            source.status = status
            if status == SourceStatus.ACTIVE:
                source.error_count = 0
        logger.info("Source %s status: %s -> %s", source_id, previous.value, status.value)
        self.persist_status(source_id, status)
        return source

    def persist_status(self, source_id: str, status: SourceStatus) -> None:
        """Hand a status change to ``on_status_change``; failures are logged."""
        if self.on_status_change is None:
            return
        try:
            self.on_status_change(source_id, status)
        except Exception:
            logger.exception("Failed to persist status of source %s", source_id)

    def apply_statuses(self, statuses: Dict[str, str]) -> int:
        """Restore previously persisted statuses over the configured ones.

        Unknown source ids and unknown status values are ignored.
        """
        applied = 0
        for source_id, value in statuses.items():
            source = self._sources.get(source_id)
            if source is None:
                logger.debug("Ignoring persisted status for unknown source %s", source_id)
                continue
            try:
                status = SourceStatus(value)
            except ValueError:
                logger.warning("Ignoring invalid persisted status %r for %s", value, source_id)
                continue
            with self._lock:
                source.status = status
            applied += 1
        if applied:
            logger.info("Restored %d persisted source status(es)", applied)
        return applied

    def statistics(self) -> Dict[str, Any]:
        sources = self.list_all()
        return {
            "total": len(sources),
            "by_kind": {k.value: sum(1 for s in sources if s.kind == k) for k in SourceKind},
            "by_status": {st.value: sum(1 for s in sources if s.status == st) for st in SourceStatus},
            "by_priority": {p.value: sum(1 for s in sources if s.priority == p) for p in Priority},
            "require_auth": sum(1 for s in sources if s.requires_auth),
            "with_errors": sum(1 for s in sources if s.error_count > 0),
        }

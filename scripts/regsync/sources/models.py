"""
Data model for regulatory data sources and sync runs.
"""

import hashlib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from regsync.dedup import record_key
from regsync.exceptions import ConfigurationError


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


class SourceKind(str, Enum):
    OFFICIAL_API = "official_api"
    WEB_SCRAPING = "web_scraping"
    PARTNER_API = "partner_api"


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        """Sort rank; high sorts first."""
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {Priority.HIGH: 0, Priority.MEDIUM: 1, Priority.LOW: 2}


class SourceStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    TESTING = "testing"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


@dataclass
class DataSource:
    """Identity, static configuration and runtime state of one external producer.

    ``last_sync`` and ``error_count`` are owned by the rate limiter; nothing
    else should mutate them.
    """

    id: str
    name: str
    kind: SourceKind
    endpoint: str
    requires_auth: bool = False
    priority: Priority = Priority.MEDIUM
    region: str = ""
    status: SourceStatus = SourceStatus.ACTIVE
    tenant: Optional[str] = None
    last_sync: Optional[datetime] = None
    error_count: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DataSource":
        """Build a source from a configuration mapping.

        Raises:
            ConfigurationError: If a required key is missing or an enum value is unknown.
        """
        try:
            return cls(
                id=str(data["id"]),
                name=str(data.get("name") or data["id"]),
                kind=SourceKind(data.get("kind", data.get("type"))),
                endpoint=str(data.get("endpoint") or ""),
                requires_auth=bool(data.get("requires_auth", False)),
                priority=Priority(data.get("priority", "medium")),
                region=str(data.get("region", "")),
                status=SourceStatus(data.get("status", "active")),
                tenant=data.get("tenant"),
            )
        except KeyError as e:
            raise ConfigurationError(f"Source entry missing required key {e}", {"entry": data}) from e
        except ValueError as e:
            raise ConfigurationError(f"Invalid source entry: {e}", {"entry": data}) from e

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "kind": self.kind.value,
            "endpoint": self.endpoint,
            "requires_auth": self.requires_auth,
            "priority": self.priority.value,
            "region": self.region,
            "status": self.status.value,
            "tenant": self.tenant,
            "last_sync": self.last_sync.isoformat() if self.last_sync else None,
            "error_count": self.error_count,
        }


@dataclass
class RateLimitWindow:
    """Quota bookkeeping for one source."""

    source_id: str
    remaining: int
    reset_at: datetime

    def __post_init__(self):
        if self.remaining < 0:
            self.remaining = 0

    def expired(self, now: datetime) -> bool:
        return self.reset_at <= now


@dataclass
class InvocationRequest:
    """Parameters for one fetch against a source."""

    path: str = ""
    method: str = "GET"
    params: Optional[Dict[str, Any]] = None
    body: Optional[Any] = None
    api_key: Optional[str] = None
    timeout: Optional[float] = None


@dataclass
class InvocationResult:
    """Uniform outcome of one fetch attempt."""

    success: bool
    records: List[Any] = field(default_factory=list)
    error: Optional[str] = None
    quota_remaining: Optional[int] = None
    quota_reset_at: Optional[datetime] = None
    next_sync_at: Optional[datetime] = None
    rate_limited: bool = False


@dataclass
class RegulatoryRecord:
    """Normalised record handed to the persistence collaborator."""

    title: str
    source_id: str
    content: str = ""
    published_at: Optional[datetime] = None
    region: str = ""
    priority: str = "medium"
    url: Optional[str] = None
    external_id: Optional[str] = None
    id: Optional[int] = None
    created_at: Optional[datetime] = None

    @property
    def fingerprint(self) -> str:
        """Stable identity used by stores to drop re-synced duplicates.

        Prefers the upstream id, then the normalised URL, then the normalised title.
        """
        key = record_key(self.external_id, self.url, self.title)
        return hashlib.sha256(f"{self.source_id}|{key}".encode("utf-8")).hexdigest()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "source_id": self.source_id,
            "region": self.region,
            "priority": self.priority,
            "url": self.url,
            "published_at": self.published_at.isoformat() if self.published_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass
class SourceOutcome:
    """Result of one source within a sync run."""

    source_id: str
    success: bool
    records: int = 0
    stored: int = 0
    error: Optional[str] = None
    rate_limited: bool = False
    cancelled: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source_id": self.source_id,
            "success": self.success,
            "records": self.records,
            "stored": self.stored,
            "error": self.error,
            "rate_limited": self.rate_limited,
            "cancelled": self.cancelled,
        }


@dataclass
class SyncRun:
    """Record of one orchestrated pass across one or more sources."""

    started_at: datetime
    completed_at: Optional[datetime] = None
    outcomes: List[SourceOutcome] = field(default_factory=list)
    total_processed: int = 0
    total_errors: int = 0
    cancelled: bool = False

    def add(self, outcome: SourceOutcome) -> None:
        self.outcomes.append(outcome)
        if outcome.cancelled:
            return
        if outcome.success:
            self.total_processed += outcome.records
        else:
            self.total_errors += 1

    @property
    def success(self) -> bool:
        return self.total_errors == 0

    def summary(self) -> Dict[str, Any]:
        """Counts-only view for the admin surface."""
        return {
            "success": self.success,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "sources": len(self.outcomes),
            "processed": self.total_processed,
            "errors": self.total_errors,
            "cancelled": self.cancelled,
            "message": (
                f"Sync completed: {self.total_processed} processed, {self.total_errors} errors"
            ),
            "outcomes": [o.to_dict() for o in self.outcomes],
        }

    def __str__(self) -> str:
        return (
            f"Synced {len(self.outcomes)} sources: {self.total_processed} records"
            f"{f' ({self.total_errors} errors)' if self.total_errors else ''}"
        )

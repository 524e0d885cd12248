"""
Append-only record storage for synced regulatory records.

Stores deduplicate on ``RegulatoryRecord.fingerprint`` so that re-syncing the
same upstream document does not create a second row.
"""

import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Generator, Iterable, List, Optional

from regsync.digest import Digest
from regsync.sources.models import RegulatoryRecord, SourceStatus, utcnow

logger = logging.getLogger(__name__)


class RecordStore(ABC):
    """Persistence collaborator interface."""

    @abstractmethod
    def append(self, records: Iterable[RegulatoryRecord]) -> int:
        """Store records, skipping known fingerprints. Returns the number newly stored."""
        ...

    @abstractmethod
    def recent(self, since: datetime) -> List[RegulatoryRecord]:
        """Records stored at or after ``since``."""
        ...

    @abstractmethod
    def pending_review(self, older_than: datetime) -> List[RegulatoryRecord]:
        """Unreviewed records stored before ``older_than``."""
        ...

    @abstractmethod
    def mark_reviewed(self, record_ids: Iterable[int]) -> int:
        ...

    @abstractmethod
    def add_digest(self, digest: Digest) -> int:
        ...

    @abstractmethod
    def list_digests(self) -> List[Digest]:
        ...

    @abstractmethod
    def save_source_status(self, source_id: str, status: SourceStatus) -> None:
        """Persist an operator or automatic source status change."""
        ...

    @abstractmethod
    def load_source_statuses(self) -> Dict[str, str]:
        """Persisted status per source id."""
        ...


class InMemoryRecordStore(RecordStore):
    """Process-local store, used for tests and ``storage.backend: memory``."""

    def __init__(self, clock=utcnow) -> None:
        self._clock = clock
        self._records: List[RegulatoryRecord] = []
        self._reviewed: set = set()
        self._fingerprints: set = set()
        self._digests: List[Digest] = []
        self._statuses: Dict[str, str] = {}
        self._lock = threading.Lock()

    def append(self, records: Iterable[RegulatoryRecord]) -> int:
        added = 0
        with self._lock:
            for record in records:
                fingerprint = record.fingerprint
                if fingerprint in self._fingerprints:
                    continue
                self._fingerprints.add(fingerprint)
                record.id = len(self._records) + 1
                record.created_at = self._clock()
                self._records.append(record)
                added += 1
        return added

    def recent(self, since: datetime) -> List[RegulatoryRecord]:
        with self._lock:
            return [r for r in self._records if r.created_at >= since]

    def pending_review(self, older_than: datetime) -> List[RegulatoryRecord]:
        with self._lock:
            return [
                r
                for r in self._records
                if r.id not in self._reviewed and r.created_at < older_than
            ]

    def mark_reviewed(self, record_ids: Iterable[int]) -> int:
        with self._lock:
            ids = {i for i in record_ids if i not in self._reviewed}
            known = {r.id for r in self._records}
            ids &= known
            self._reviewed |= ids
            return len(ids)

    def add_digest(self, digest: Digest) -> int:
        with self._lock:
            digest.id = len(self._digests) + 1
            self._digests.append(digest)
            return digest.id

    def list_digests(self) -> List[Digest]:
        with self._lock:
            return list(self._digests)

    def save_source_status(self, source_id: str, status: SourceStatus) -> None:
        with self._lock:
            self._statuses[source_id] = SourceStatus(status).value

    def load_source_statuses(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._statuses)


def _to_iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _from_iso(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


class SqliteRecordStore(RecordStore):
    """SQLite-backed record store."""

    def __init__(self, db_path: Path, clock=utcnow) -> None:
        """
        Initialize the record store.

        Args:
            db_path: Path to the database file.
            clock: Callable returning the current aware UTC datetime.
        """
        self.db_path = Path(db_path)
        self._clock = clock
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    @contextmanager
    def connection(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Context manager for database connections.

        Yields:
            SQLite connection with row factory set to sqlite3.Row.
        """
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_schema(self) -> None:
        with self.connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS records (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    fingerprint TEXT UNIQUE NOT NULL,
                    source_id TEXT NOT NULL,
                    title TEXT NOT NULL,
                    content TEXT,
                    published_at TEXT,
                    region TEXT,
                    priority TEXT,
                    url TEXT,
                    external_id TEXT,
                    reviewed BOOLEAN DEFAULT 0,
                    created_at TEXT NOT NULL
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_records_created ON records(created_at)"
            )
            conn.execute("""
                CREATE TABLE IF NOT EXISTS digests (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    title TEXT NOT NULL,
                    content TEXT NOT NULL,
                    html TEXT,
                    total INTEGER NOT NULL,
                    generated_at TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS source_status (
                    source_id TEXT PRIMARY KEY,
                    status TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

    def append(self, records: Iterable[RegulatoryRecord]) -> int:
        now = _to_iso(self._clock())
        added = 0
        with self.connection() as conn:
            for record in records:
                cursor = conn.execute(
                    """
                    INSERT OR IGNORE INTO records
                        (fingerprint, source_id, title, content, published_at,
                         region, priority, url, external_id, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        record.fingerprint,
                        record.source_id,
                        record.title,
                        record.content,
                        _to_iso(record.published_at),
                        record.region,
                        record.priority,
                        record.url,
                        record.external_id,
                        now,
                    ),
                )
                if cursor.rowcount:
                    record.id = cursor.lastrowid
                    added += 1
        return added

    def _row_to_record(self, row: sqlite3.Row) -> RegulatoryRecord:
        return RegulatoryRecord(
            id=row["id"],
            title=row["title"],
            source_id=row["source_id"],
            content=row["content"] or "",
            published_at=_from_iso(row["published_at"]),
            region=row["region"] or "",
            priority=row["priority"] or "medium",
            url=row["url"],
            external_id=row["external_id"],
            created_at=_from_iso(row["created_at"]),
        )

    def recent(self, since: datetime) -> List[RegulatoryRecord]:
        with self.connection() as conn:
            rows = conn.execute(
                "SELECT * FROM records WHERE created_at >= ? ORDER BY id",
                (_to_iso(since),),
            ).fetchall()
        return [self._row_to_record(r) for r in rows]

    def pending_review(self, older_than: datetime) -> List[RegulatoryRecord]:
        with self.connection() as conn:
            rows = conn.execute(
                "SELECT * FROM records WHERE reviewed = 0 AND created_at < ? ORDER BY id",
                (_to_iso(older_than),),
            ).fetchall()
        return [self._row_to_record(r) for r in rows]

    def mark_reviewed(self, record_ids: Iterable[int]) -> int:
        ids = list(record_ids)
        if not ids:
            return 0
        placeholders = ",".join("?" for _ in ids)
        with self.connection() as conn:
            cursor = conn.execute(
                f"UPDATE records SET reviewed = 1 WHERE reviewed = 0 AND id IN ({placeholders})",
                ids,
            )
            return cursor.rowcount

    def add_digest(self, digest: Digest) -> int:
        with self.connection() as conn:
            cursor = conn.execute(
                """
                INSERT INTO digests (title, content, html, total, generated_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    digest.title,
                    digest.content,
                    digest.html,
                    digest.total,
                    _to_iso(digest.generated_at),
                ),
            )
            digest.id = cursor.lastrowid
        return digest.id

    def list_digests(self) -> List[Digest]:
        with self.connection() as conn:
            rows = conn.execute("SELECT * FROM digests ORDER BY id").fetchall()
        return [
            Digest(
                id=row["id"],
                title=row["title"],
                content=row["content"],
                html=row["html"] or "",
                total=row["total"],
                generated_at=_from_iso(row["generated_at"]),
            )
            for row in rows
        ]

    def save_source_status(self, source_id: str, status: SourceStatus) -> None:
        with self.connection() as conn:
            conn.execute(
                """
                INSERT INTO source_status (source_id, status, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(source_id) DO UPDATE SET
                    status = excluded.status, updated_at = excluded.updated_at
                """,
                (source_id, SourceStatus(status).value, _to_iso(self._clock())),
            )

    def load_source_statuses(self) -> Dict[str, str]:
        with self.connection() as conn:
            rows = conn.execute("SELECT source_id, status FROM source_status").fetchall()
        return {row["source_id"]: row["status"] for row in rows}


def build_store(cfg) -> RecordStore:
    """Create the record store selected by ``storage.backend``."""
    backend = cfg.get("storage.backend", "sqlite")
    if backend == "memory":
        return InMemoryRecordStore()
    logger.info("Using SQLite record store at %s", cfg.database_path)
    return SqliteRecordStore(cfg.database_path)

"""Tests for the SQLite and in-memory record stores."""

from datetime import timedelta

import pytest
from regsync.digest import build_digest
from regsync.sources.models import RegulatoryRecord, SourceStatus
from regsync.storage import InMemoryRecordStore, SqliteRecordStore, build_store


@pytest.fixture(params=["memory", "sqlite"])
def any_store(request, tmp_path, clock):
    if request.param == "memory":
        return InMemoryRecordStore(clock=clock)
    return SqliteRecordStore(tmp_path / "db" / "records.db", clock=clock)


def _record(title, **kwargs):
    return RegulatoryRecord(title=title, source_id=kwargs.pop("source_id", "fda"), **kwargs)


class TestRecordStore:
    def test_append_assigns_ids(self, any_store):
        records = [_record("A", external_id="1"), _record("B", external_id="2")]
        assert any_store.append(records) == 2
        assert all(r.id is not None for r in records)

    def test_append_skips_known_fingerprints(self, any_store):
        any_store.append([_record("A", external_id="1")])
        assert any_store.append([_record("A renamed", external_id="1")]) == 0

    def test_recent_window(self, any_store, clock):
        any_store.append([_record("old")])
        clock.advance(days=8)
        any_store.append([_record("new")])

        titles = [r.title for r in any_store.recent(since=clock() - timedelta(days=7))]
        assert titles == ["new"]

    def test_pending_review_and_mark_reviewed(self, any_store, clock):
        old, other = _record("old"), _record("other")
        any_store.append([old, other])
        clock.advance(hours=25)
        any_store.append([_record("fresh")])

        cutoff = clock() - timedelta(hours=24)
        assert {r.title for r in any_store.pending_review(older_than=cutoff)} == {"old", "other"}

        assert any_store.mark_reviewed([old.id]) == 1
        assert [r.title for r in any_store.pending_review(older_than=cutoff)] == ["other"]

    def test_round_trips_fields(self, any_store, clock):
        published = clock() - timedelta(days=2)
        any_store.append(
            [
                _record(
                    "Recall",
                    content="details",
                    published_at=published,
                    region="United States",
                    priority="high",
                    url="https://fda.gov/r",
                )
            ]
        )
        (stored,) = any_store.recent(since=clock())
        assert stored.published_at == published
        assert stored.priority == "high"
        assert stored.created_at == clock()

    def test_digests(self, any_store, clock):
        digest = build_digest([_record("A")], generated_at=clock())
        digest_id = any_store.add_digest(digest)
        assert digest_id == 1
        (stored,) = any_store.list_digests()
        assert stored.title == digest.title
        assert stored.total == 1
        assert stored.html == digest.html

    def test_source_statuses_overwrite(self, any_store):
        assert any_store.load_source_statuses() == {}

        any_store.save_source_status("ema_pms", SourceStatus.INACTIVE)
        any_store.save_source_status("ema_pms", SourceStatus.ACTIVE)
        any_store.save_source_status("bfarm_scraping", SourceStatus.INACTIVE)

        assert any_store.load_source_statuses() == {
            "ema_pms": "active",
            "bfarm_scraping": "inactive",
        }


class TestSqlitePersistence:
    def test_statuses_survive_reopening(self, tmp_path, clock):
        path = tmp_path / "records.db"
        SqliteRecordStore(path, clock=clock).save_source_status("mhra_more", SourceStatus.ACTIVE)

        assert SqliteRecordStore(path, clock=clock).load_source_statuses() == {"mhra_more": "active"}


class TestBuildStore:
    def test_memory_backend(self, fresh_config):
        fresh_config._merge_config({"storage": {"backend": "memory"}})
        assert isinstance(build_store(fresh_config), InMemoryRecordStore)

    def test_sqlite_backend_uses_database_path(self, fresh_config):
        store = build_store(fresh_config)
        assert isinstance(store, SqliteRecordStore)
        assert store.db_path == fresh_config.database_path
        assert store.db_path.exists()

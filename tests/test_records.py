"""Tests for payload normalisation and feed scraping."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from regsync.exceptions import InvocationFailure
from regsync.sources.models import InvocationRequest, RegulatoryRecord
from regsync.sources.records import normalize_records, parse_date
from regsync.sources.scraping import FeedScraper, JsonPartnerClient

RSS = b"""<?xml version="1.0"?>
<rss version="2.0"><channel><title>Notices</title>
<item>
  <title> Field Safety Notice 2026-01 </title>
  <link>https://regulator.example.org/fsn/1</link>
  <guid>fsn-1</guid>
  <description>Infusion pump software issue</description>
  <pubDate>Mon, 05 Jan 2026 10:00:00 GMT</pubDate>
</item>
</channel></rss>"""


class TestParseDate:
    @pytest.mark.parametrize(
        "value",
        ["2026-01-05", "20260105", "2026-01-05T00:00:00Z", "January 05, 2026"],
    )
    def test_formats(self, value):
        assert parse_date(value) == datetime(2026, 1, 5, tzinfo=timezone.utc)

    def test_naive_datetime_gets_utc(self):
        assert parse_date(datetime(2026, 1, 5)).tzinfo == timezone.utc

    def test_unparseable(self):
        assert parse_date("sometime soon") is None
        assert parse_date(None) is None


class TestNormalizeRecords:
    def test_openfda_recall_fields(self, source_factory):
        source = source_factory("fda_openfda", priority="high", region="United States")
        items = [
            {
                "product_description": "Infusion pump",
                "reason_for_recall": "Software defect",
                "recall_initiation_date": "20260105",
                "recall_number": "Z-0001-2026",
            }
        ]

        (record,) = normalize_records(source, items)

        assert record.title == "Infusion pump"
        assert record.content == "Software defect"
        assert record.external_id == "Z-0001-2026"
        assert record.region == "United States"
        assert record.priority == "high"
        assert record.published_at == datetime(2026, 1, 5, tzinfo=timezone.utc)

    def test_items_without_title_are_dropped(self, source_factory):
        records = normalize_records(source_factory("s"), [{"content": "no title"}, {"title": "ok"}])
        assert [r.title for r in records] == ["ok"]

    def test_plain_strings_and_records_pass_through(self, source_factory):
        existing = RegulatoryRecord(title="kept", source_id="s")
        records = normalize_records(source_factory("s"), ["  headline ", existing, ""])
        assert [r.title for r in records] == ["headline", "kept"]


class TestFingerprint:
    def test_prefers_external_id(self):
        a = RegulatoryRecord(title="A", source_id="s", external_id="1", url="https://x/a")
        b = RegulatoryRecord(title="B", source_id="s", external_id="1", url="https://x/b")
        assert a.fingerprint == b.fingerprint

    def test_url_tracking_params_ignored(self):
        a = RegulatoryRecord(title="A", source_id="s", url="https://x.org/a?utm_source=mail")
        b = RegulatoryRecord(title="B", source_id="s", url="https://x.org/a/")
        assert a.fingerprint == b.fingerprint

    def test_scoped_to_source(self):
        a = RegulatoryRecord(title="Same", source_id="s1")
        b = RegulatoryRecord(title="Same", source_id="s2")
        assert a.fingerprint != b.fingerprint


class TestFeedScraper:
    def test_parses_rss_entries(self, mock_session, source_factory):
        mock_session.get.return_value.content = RSS
        scraper = FeedScraper(session=mock_session, timeout=7)

        (item,) = scraper.scrape(source_factory("bfarm", kind="web_scraping"), "https://r/feed")

        assert item["title"] == "Field Safety Notice 2026-01"
        assert item["url"] == "https://regulator.example.org/fsn/1"
        assert item["external_id"] == "fsn-1"
        assert item["published_at"].date().isoformat() == "2026-01-05"
        mock_session.get.assert_called_once_with("https://r/feed", timeout=7)

    def test_http_error_raises(self, mock_session, source_factory):
        response = mock_session.get.return_value
        response.ok = False
        response.status_code = 404
        response.reason = "Not Found"

        with pytest.raises(InvocationFailure):
            FeedScraper(session=mock_session).scrape(source_factory("s"), "https://r/feed")

    def test_garbage_raises(self, mock_session, source_factory):
        mock_session.get.return_value.content = b"<html><body>not a feed"

        with pytest.raises(InvocationFailure):
            FeedScraper(session=mock_session).scrape(source_factory("s"), "https://r/feed")


class TestJsonPartnerClient:
    def test_bearer_and_data_unwrap(self, mock_session, source_factory):
        mock_session.request.return_value.json.return_value = {"data": [{"title": "x"}]}
        client = JsonPartnerClient(session=mock_session)

        response = client.fetch(
            source_factory("p", kind="partner_api"), "https://p/api", InvocationRequest(api_key="k")
        )

        assert response.records == [{"title": "x"}]
        headers = mock_session.request.call_args.kwargs["headers"]
        assert headers["Authorization"] == "Bearer k"

    def test_error_status_raises(self, mock_session, source_factory):
        mock_session.request.return_value = MagicMock(ok=False, status_code=401, reason="Unauthorized")

        with pytest.raises(InvocationFailure):
            JsonPartnerClient(session=mock_session).fetch(
                source_factory("p"), "https://p/api", InvocationRequest()
            )

    @pytest.mark.parametrize(
        "payload, expected",
        [
            ({"data": {"title": "x"}}, [{"data": {"title": "x"}}]),
            ({"results": [{"title": "y"}]}, [{"title": "y"}]),
            (42, []),
            ("text", []),
        ],
    )
    def test_irregular_payloads(self, mock_session, source_factory, payload, expected):
        mock_session.request.return_value.json.return_value = payload

        response = JsonPartnerClient(session=mock_session).fetch(
            source_factory("p", kind="partner_api"), "https://p/api", InvocationRequest()
        )

        assert response.records == expected

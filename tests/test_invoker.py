"""Tests for SourceInvoker dispatch, quota handling and failure reporting."""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import requests
from regsync.sources.base import PartnerResponse
from regsync.sources.invoker import SourceInvoker, parse_rate_limit_headers
from regsync.sources.models import InvocationRequest, SourceStatus
from regsync.sources.records import unwrap_payload


def _invoker(rate_limiter, session, **kwargs):
    return SourceInvoker(rate_limiter, session=session, **kwargs)


class TestOfficialApi:
    def test_success_returns_results_and_records_outcome(
        self, rate_limiter, registry, mock_session, clock
    ):
        mock_session.request.return_value.json.return_value = {
            "results": [{"title": "Recall A"}, {"title": "Recall B"}]
        }
        registry.get("high_src").error_count = 2

        result = _invoker(rate_limiter, mock_session).invoke(registry.get("high_src"))

        assert result.success is True
        assert len(result.records) == 2
        assert registry.get("high_src").error_count == 0
        assert registry.get("high_src").last_sync == clock()

    def test_request_is_built_from_endpoint_and_path(self, rate_limiter, registry, mock_session):
        invoker = _invoker(rate_limiter, mock_session, timeout=12)
        invoker.invoke(registry.get("high_src"), InvocationRequest(path="/device/recall.json"))

        args, kwargs = mock_session.request.call_args
        assert args == ("GET", "https://high_src.example.org/device/recall.json")
        assert kwargs["timeout"] == 12
        assert "Authorization" not in kwargs["headers"]

    def test_auth_header_when_required(self, rate_limiter, registry, mock_session):
        source = registry.get("high_src")
        source.requires_auth = True
        invoker = _invoker(rate_limiter, mock_session, api_keys=lambda sid: f"key-{sid}")

        invoker.invoke(source)

        headers = mock_session.request.call_args.kwargs["headers"]
        assert headers["Authorization"] == "Bearer key-high_src"

    def test_http_error_is_failed_result(self, rate_limiter, registry, mock_session):
        response = mock_session.request.return_value
        response.ok = False
        response.status_code = 503
        response.reason = "Service Unavailable"

        result = _invoker(rate_limiter, mock_session).invoke(registry.get("high_src"))

        assert result.success is False
        assert result.error.startswith("HTTP 503: Service Unavailable")
        assert registry.get("high_src").error_count == 1

    def test_timeout_is_failed_result(self, rate_limiter, registry, mock_session):
        mock_session.request.side_effect = requests.Timeout("read timed out")

        result = _invoker(rate_limiter, mock_session).invoke(registry.get("high_src"))

        assert result.success is False
        assert "timed out" in result.error
        assert registry.get("high_src").error_count == 1

    def test_quota_headers_are_recorded(self, rate_limiter, registry, mock_session):
        reset = datetime(2026, 1, 7, 8, 0, tzinfo=timezone.utc)
        mock_session.request.return_value.headers = {
            "X-RateLimit-Remaining": "0",
            "X-RateLimit-Reset": str(int(reset.timestamp())),
        }

        result = _invoker(rate_limiter, mock_session).invoke(registry.get("high_src"))

        assert result.success is True
        assert result.quota_remaining == 0
        assert result.quota_reset_at == reset
        assert rate_limiter.check_quota("high_src") is False

    def test_http_429_is_rate_limited(self, rate_limiter, registry, mock_session, clock):
        response = mock_session.request.return_value
        response.ok = False
        response.status_code = 429
        response.reason = "Too Many Requests"
        response.headers = {"X-RateLimit-Reset": str(int((clock() + timedelta(hours=1)).timestamp()))}

        result = _invoker(rate_limiter, mock_session).invoke(registry.get("high_src"))

        assert result.success is False
        assert result.rate_limited is True
        assert rate_limiter.check_quota("high_src") is False


class TestQuotaGate:
    def test_denied_without_network_call(self, rate_limiter, registry, mock_session, clock):
        reset = clock() + timedelta(minutes=30)
        rate_limiter.record_quota("high_src", 0, reset)

        result = _invoker(rate_limiter, mock_session).invoke(registry.get("high_src"))

        assert result.success is False
        assert result.error == "rate limit exceeded"
        assert result.rate_limited is True
        assert result.next_sync_at == reset
        mock_session.request.assert_not_called()

    def test_denial_does_not_count_as_error(self, rate_limiter, registry, mock_session, clock):
        rate_limiter.record_quota("high_src", 0, clock() + timedelta(minutes=30))
        invoker = _invoker(rate_limiter, mock_session)

        for _ in range(10):
            invoker.invoke(registry.get("high_src"))

        assert registry.get("high_src").error_count == 0
        assert registry.get("high_src").status == SourceStatus.ACTIVE


class TestOtherKinds:
    def test_scraper_collaborator(self, rate_limiter, source_factory, mock_session):
        source = source_factory("bfarm", kind="web_scraping")
        rate_limiter.registry.register(source)
        scraper = MagicMock()
        scraper.scrape.return_value = [{"title": "Field safety notice"}]

        result = _invoker(rate_limiter, mock_session, scraper=scraper).invoke(source)

        assert result.success is True
        assert result.records == [{"title": "Field safety notice"}]
        scraper.scrape.assert_called_once_with(source, "https://bfarm.example.org")

    def test_scraper_exception_is_failed_result(self, rate_limiter, source_factory, mock_session):
        source = source_factory("bfarm", kind="web_scraping")
        rate_limiter.registry.register(source)
        scraper = MagicMock()
        scraper.scrape.side_effect = ValueError("layout changed")

        result = _invoker(rate_limiter, mock_session, scraper=scraper).invoke(source)

        assert result.success is False
        assert result.error == "layout changed"
        assert source.error_count == 1

    def test_partner_quota_and_api_key(self, rate_limiter, source_factory, mock_session, clock):
        source = source_factory("partner", kind="partner_api")
        rate_limiter.registry.register(source)
        partner = MagicMock()
        partner.fetch.return_value = PartnerResponse(
            records=[{"title": "x"}], quota_remaining=0, quota_reset_at=clock() + timedelta(hours=1)
        )
        request = InvocationRequest()

        invoker = _invoker(
            rate_limiter, mock_session, partner_client=partner, api_keys=lambda sid: "pk"
        )
        result = invoker.invoke(source, request)

        assert result.success is True
        assert partner.fetch.call_args.args[2].api_key == "pk"
        # Caller's request is left untouched
        assert request.api_key is None
        assert rate_limiter.check_quota("partner") is False


class TestHelpers:
    def test_parse_rate_limit_headers(self):
        remaining, reset = parse_rate_limit_headers(
            {"X-RateLimit-Remaining": "42", "X-RateLimit-Reset": "1767772800"}
        )
        assert remaining == 42
        assert reset == datetime(2026, 1, 7, 8, 0, tzinfo=timezone.utc)

    def test_parse_malformed_headers(self):
        assert parse_rate_limit_headers({"X-RateLimit-Remaining": "lots"}) == (None, None)
        assert parse_rate_limit_headers({}) == (None, None)

    def test_unwrap_payload(self):
        assert unwrap_payload([1, 2]) == [1, 2]
        assert unwrap_payload({"results": [1]}) == [1]
        assert unwrap_payload({"data": [2]}) == [2]
        assert unwrap_payload({"title": "x"}) == [{"title": "x"}]
        assert unwrap_payload("nope") == []

"""
Source invoker: one fetch against one source, normalised into an InvocationResult.
"""

import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

import requests

from regsync.exceptions import InvocationFailure, RateLimitExceeded
from regsync.sources.base import PartnerClient, PartnerResponse, Scraper
from regsync.sources.models import (
    DataSource,
    InvocationRequest,
    InvocationResult,
    SourceKind,
    utcnow,
)
from regsync.sources.rate_limit import RateLimiter
from regsync.sources.records import unwrap_payload
from regsync.sources.scraping import FeedScraper, JsonPartnerClient

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30
USER_AGENT = "RegSync/1.0 (Regulatory Intelligence)"

RATE_LIMIT_REMAINING_HEADER = "X-RateLimit-Remaining"
RATE_LIMIT_RESET_HEADER = "X-RateLimit-Reset"


class SourceInvoker:
    """Performs exactly one fetch against one source.

    Transport errors, timeouts and non-2xx statuses are all reported as a
    failed InvocationResult; nothing is raised to the caller.

    Args:
        rate_limiter: Quota gate and failure recorder.
        session: Shared requests session for HTTP-backed kinds.
        scraper: Collaborator for ``web_scraping`` sources.
        partner_client: Collaborator for ``partner_api`` sources.
        timeout: Default per-request timeout in seconds.
        api_keys: Callable mapping a source id to its API key, or None.
        user_agent: User-Agent header sent to official APIs.
    """

    def __init__(
        self,
        rate_limiter: RateLimiter,
        session: Optional[requests.Session] = None,
        scraper: Optional[Scraper] = None,
        partner_client: Optional[PartnerClient] = None,
        timeout: float = REQUEST_TIMEOUT,
        api_keys: Optional[Callable[[str], Optional[str]]] = None,
        user_agent: str = USER_AGENT,
    ) -> None:
        self.rate_limiter = rate_limiter
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": user_agent})
        self.scraper = scraper or FeedScraper(session=self.session, timeout=timeout)
        self.partner_client = partner_client or JsonPartnerClient(
            session=self.session, timeout=timeout
        )
        self._api_keys = api_keys

    def invoke(
        self, source: DataSource, request: Optional[InvocationRequest] = None
    ) -> InvocationResult:
        request = request or InvocationRequest()

        if not self.rate_limiter.check_quota(source.id):
            window = self.rate_limiter.get_window(source.id)
            logger.info("Rate limit exceeded for %s, skipping this cycle", source.id)
            return InvocationResult(
                success=False,
                error="rate limit exceeded",
                next_sync_at=window.reset_at if window else utcnow(),
                rate_limited=True,
            )

        url = f"{source.endpoint}{request.path}"
        try:
            records, remaining, reset_at = self._dispatch(source, url, request)
        except RateLimitExceeded as e:
            self.rate_limiter.record_outcome(source.id, False)
            return InvocationResult(success=False, error=str(e), rate_limited=True)
        except Exception as e:
            # Collaborators may raise anything; all of it counts as a failed invocation
            logger.warning("Invocation of %s failed: %s", source.id, e)
            self.rate_limiter.record_outcome(source.id, False)
            return InvocationResult(success=False, error=str(e))

        if remaining is not None and reset_at is not None:
            self.rate_limiter.record_quota(source.id, remaining, reset_at)
        self.rate_limiter.record_outcome(source.id, True)

        return InvocationResult(
            success=True,
            records=records,
            quota_remaining=remaining,
            quota_reset_at=reset_at,
        )

    def _dispatch(
        self, source: DataSource, url: str, request: InvocationRequest
    ) -> Tuple[List[Any], Optional[int], Optional[datetime]]:
        if source.kind == SourceKind.OFFICIAL_API:
            return self._call_official_api(source, url, request)

        if source.kind == SourceKind.WEB_SCRAPING:
            records = self.scraper.scrape(source, url)
            return list(records or []), None, None

        if source.kind == SourceKind.PARTNER_API:
            if request.api_key is None:
                request = replace(request, api_key=self._api_key(source))
            response: PartnerResponse = self.partner_client.fetch(source, url, request)
            return list(response.records), response.quota_remaining, response.quota_reset_at

        raise InvocationFailure(f"Unsupported source kind: {source.kind}")

    def _call_official_api(
        self, source: DataSource, url: str, request: InvocationRequest
    ) -> Tuple[List[Any], Optional[int], Optional[datetime]]:
        headers = {"Accept": "application/json"}
        api_key = request.api_key or self._api_key(source)
        if source.requires_auth and api_key:
            headers["Authorization"] = f"Bearer {api_key}"

        response = self.session.request(
            request.method,
            url,
            params=request.params,
            json=request.body,
            headers=headers,
            timeout=request.timeout or self.timeout,
        )

        remaining, reset_at = parse_rate_limit_headers(response.headers)

        if response.status_code == 429:
            if reset_at is not None:
                self.rate_limiter.record_quota(source.id, 0, reset_at)
            raise RateLimitExceeded(f"HTTP 429: {response.reason}")
        if not response.ok:
            raise InvocationFailure(
                f"HTTP {response.status_code}: {response.reason}", status_code=response.status_code
            )

        return unwrap_payload(response.json()), remaining, reset_at

    def _api_key(self, source: DataSource) -> Optional[str]:
        if self._api_keys is None:
            return None
        return self._api_keys(source.id)


def parse_rate_limit_headers(headers: Dict[str, str]) -> Tuple[Optional[int], Optional[datetime]]:
    """Read X-RateLimit-Remaining / X-RateLimit-Reset (epoch seconds).

    Returns (None, None) for any value that is missing or malformed.
    """
    remaining_raw = headers.get(RATE_LIMIT_REMAINING_HEADER)
    reset_raw = headers.get(RATE_LIMIT_RESET_HEADER)

    remaining = None
    reset_at = None
    try:
        if remaining_raw is not None:
            remaining = int(remaining_raw)
        if reset_raw is not None:
            reset_at = datetime.fromtimestamp(int(reset_raw), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        logger.debug("Ignoring malformed rate limit headers: %s / %s", remaining_raw, reset_raw)
        return None, None
    return remaining, reset_at

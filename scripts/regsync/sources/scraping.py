"""
Default scraping and partner collaborators.

``FeedScraper`` reads the RSS/Atom feed published by a regulator's site.
Site-specific HTML extraction is out of scope; plug in another Scraper for that.
"""

import calendar
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import feedparser
import requests

from regsync.exceptions import InvocationFailure
from regsync.sources.base import PartnerClient, PartnerResponse, Scraper
from regsync.sources.models import DataSource, InvocationRequest
from regsync.sources.records import unwrap_payload

logger = logging.getLogger(__name__)


class FeedScraper(Scraper):
    """Scrape a source through its RSS/Atom feed.

    The feed is downloaded with ``requests`` so the request timeout applies,
    then handed to feedparser.
    """

    def __init__(self, session: Optional[requests.Session] = None, timeout: float = 30) -> None:
        self.session = session or requests.Session()
        self.timeout = timeout

    def scrape(self, source: DataSource, url: str) -> List[Dict[str, Any]]:
        response = self.session.get(url, timeout=self.timeout)
        if not response.ok:
            raise InvocationFailure(
                f"HTTP {response.status_code}: {response.reason}", status_code=response.status_code
            )

        # feedparser never raises; a bozo feed with no entries is a failed fetch
        feed = feedparser.parse(response.content)
        if feed.get("bozo") and not feed.entries:
            raise InvocationFailure(f"Feed parse failed for {url}: {feed.get('bozo_exception')}")

        records = []
        for item in feed.entries:
            published = self._parse_date(item)
            records.append(
                {
                    "title": item.get("title", "").strip(),
                    "content": item.get("summary", ""),
                    "url": item.get("link"),
                    "external_id": item.get("id"),
                    "published_at": published,
                }
            )

        logger.debug("Scraped %d entries from %s", len(records), url)
        return records

    def _parse_date(self, item) -> Optional[datetime]:
        """Extract publication date from feed item."""
        for attr in ("published_parsed", "updated_parsed"):
            parsed = getattr(item, attr, None)
            if parsed:
                try:
                    return datetime.fromtimestamp(calendar.timegm(parsed), tz=timezone.utc)
                except (ValueError, OverflowError):
                    continue
        return None


class JsonPartnerClient(PartnerClient):
    """Partner feed served as JSON over HTTP."""

    def __init__(self, session: Optional[requests.Session] = None, timeout: float = 30) -> None:
        self.session = session or requests.Session()
        self.timeout = timeout

    def fetch(
        self, source: DataSource, url: str, request: InvocationRequest
    ) -> PartnerResponse:
        headers = {"Accept": "application/json"}
        if request.api_key:
            headers["Authorization"] = f"Bearer {request.api_key}"

        response = self.session.request(
            request.method,
            url,
            params=request.params,
            json=request.body,
            headers=headers,
            timeout=request.timeout or self.timeout,
        )
        if not response.ok:
            raise InvocationFailure(
                f"HTTP {response.status_code}: {response.reason}", status_code=response.status_code
            )

        return PartnerResponse(records=unwrap_payload(response.json()))

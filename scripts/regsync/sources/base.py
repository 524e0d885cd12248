"""
Collaborator interfaces for source kinds whose fetch logic lives outside the core.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Optional

from regsync.sources.models import DataSource, InvocationRequest


@dataclass
class PartnerResponse:
    """Records returned by a partner client plus any quota it reported."""

    records: List[Any] = field(default_factory=list)
    quota_remaining: Optional[int] = None
    quota_reset_at: Optional[datetime] = None


class Scraper(ABC):
    """Extracts structured records from a web-scraped source.

    Implementations raise on failure; the invoker turns the exception into a
    failed InvocationResult.
    """

    @abstractmethod
    def scrape(self, source: DataSource, url: str) -> List[Any]:
        """Return zero or more records found at ``url``."""
        ...


class PartnerClient(ABC):
    """Client for partner feeds (e.g. commercial regulatory data providers)."""

    @abstractmethod
    def fetch(
        self, source: DataSource, url: str, request: InvocationRequest
    ) -> PartnerResponse:
        """Fetch records from a partner endpoint."""
        ...

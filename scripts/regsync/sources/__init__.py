"""
Data source registry, rate limiting and invocation.

Each registered DataSource is fetched through the SourceInvoker, which
applies the RateLimiter and normalises the outcome into an InvocationResult.
"""

from .base import PartnerClient, PartnerResponse, Scraper
from .invoker import SourceInvoker
from .models import (
    DataSource,
    InvocationRequest,
    InvocationResult,
    Priority,
    RateLimitWindow,
    RegulatoryRecord,
    Severity,
    SourceKind,
    SourceOutcome,
    SourceStatus,
    SyncRun,
)
from .rate_limit import RateLimiter
from .registry import SourceRegistry

__all__ = [
    "DataSource",
    "InvocationRequest",
    "InvocationResult",
    "PartnerClient",
    "PartnerResponse",
    "Priority",
    "RateLimitWindow",
    "RateLimiter",
    "RegulatoryRecord",
    "Scraper",
    "Severity",
    "SourceInvoker",
    "SourceKind",
    "SourceOutcome",
    "SourceRegistry",
    "SourceStatus",
    "SyncRun",
]

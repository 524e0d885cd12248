"""Shared test fixtures for the regsync test suite."""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
from regsync.config import Config
from regsync.notifications import RecordingNotifier
from regsync.sources.models import (
    DataSource,
    InvocationResult,
    Priority,
    SourceKind,
    SourceStatus,
)
from regsync.sources.rate_limit import RateLimiter
from regsync.sources.registry import SourceRegistry
from regsync.storage import InMemoryRecordStore


class FakeClock:
    """Controllable UTC clock."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def make_source(source_id, priority="medium", status="active", kind="official_api", region="EU"):
    return DataSource(
        id=source_id,
        name=source_id.upper(),
        kind=SourceKind(kind),
        endpoint=f"https://{source_id}.example.org",
        priority=Priority(priority),
        region=region,
        status=SourceStatus(status),
    )


class FakeInvoker:
    """Invoker returning scripted results and recording call order."""

    def __init__(self, rate_limiter, results=None) -> None:
        self.rate_limiter = rate_limiter
        self.results = results or {}
        self.calls = []

    def invoke(self, source, request=None):
        self.calls.append(source.id)
        result = self.results.get(source.id, InvocationResult(success=True, records=[]))
        if callable(result):
            result = result()
        self.rate_limiter.record_outcome(source.id, result.success)
        return result


@pytest.fixture
def fresh_config(tmp_path, monkeypatch):
    """Create a Config instance with reset singleton state pointed at a temp directory."""
    Config._instance = None
    monkeypatch.setenv("REGSYNC_BASE_DIR", str(tmp_path))
    monkeypatch.delenv("REGSYNC_NOTIFY_RECIPIENTS", raising=False)
    cfg = Config()
    yield cfg
    Config._instance = None


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 1, 7, 7, 0, tzinfo=timezone.utc))


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def registry():
    """Registry with three active sources of descending priority."""
    return SourceRegistry(
        [
            make_source("low_src", priority="low"),
            make_source("high_src", priority="high"),
            make_source("medium_src", priority="medium"),
        ]
    )


@pytest.fixture
def rate_limiter(registry, notifier, clock):
    return RateLimiter(registry, notifier=notifier, recipients=["ops@example.org"], clock=clock)


@pytest.fixture
def store(clock):
    return InMemoryRecordStore(clock=clock)


@pytest.fixture
def mock_session():
    """requests.Session stand-in with a configurable response."""
    session = MagicMock()
    session.headers = {}
    response = MagicMock()
    response.ok = True
    response.status_code = 200
    response.reason = "OK"
    response.headers = {}
    response.json.return_value = {"results": []}
    session.request.return_value = response
    session.get.return_value = response
    return session


@pytest.fixture
def source_factory():
    return make_source


@pytest.fixture
def fake_invoker_factory(rate_limiter):
    def _make(results=None):
        return FakeInvoker(rate_limiter, results)

    return _make

"""
Global pytest fixtures for the short-link engine test suite.

Responsibilities:
    - Provide a fresh FastAPI TestClient via the app factory for integration tests
    - Provide isolated in-memory Storage, recorder, resolver and aggregator
      fixtures for direct testing
    - Provide small test doubles shared across modules (fixed clock,
      list-backed recorder)

Why an app factory?
    Using `create_app()` ensures each test gets fresh in-memory state and its
    own recorder threads, eliminating cross-test flakiness.
"""

from datetime import datetime, timezone
from typing import List

import pytest
from fastapi.testclient import TestClient

from main import create_app
from shortlink_engine.analytics.aggregator import AnalyticsAggregator
from shortlink_engine.analytics.recorder import ClickRecorder
from shortlink_engine.config import Settings
from shortlink_engine.manager.code_allocator import CodeAllocator
from shortlink_engine.manager.link_manager import LinkManager
from shortlink_engine.manager.resolver import RedirectResolver
from shortlink_engine.models import RawClick
from shortlink_engine.storage.storage import Storage

FIXED_NOW = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)


class ListRecorder:
    """Recorder double: keeps submitted capture tasks in a list."""

    def __init__(self):
        self.submitted: List[RawClick] = []

    def submit(self, raw: RawClick) -> bool:
        self.submitted.append(raw)
        return True


@pytest.fixture
def storage() -> Storage:
    """Provide a fresh in-memory Storage backend."""
    return Storage()


@pytest.fixture
def allocator(storage: Storage) -> CodeAllocator:
    return CodeAllocator(storage)


@pytest.fixture
def manager(storage: Storage, allocator: CodeAllocator) -> LinkManager:
    """Provide a LinkManager wired to the storage fixture."""
    return LinkManager(storage, allocator=allocator)


@pytest.fixture
def list_recorder() -> ListRecorder:
    return ListRecorder()


@pytest.fixture
def resolver(storage: Storage, list_recorder: ListRecorder) -> RedirectResolver:
    """Resolver whose capture tasks land in `list_recorder.submitted`."""
    return RedirectResolver(storage, recorder=list_recorder)


@pytest.fixture
def recorder(storage: Storage):
    """A running ClickRecorder writing to the storage fixture; stopped after the test."""
    rec = ClickRecorder(storage, workers=2, queue_size=1000)
    rec.start()
    yield rec
    rec.stop()


@pytest.fixture
def aggregator(storage: Storage) -> AnalyticsAggregator:
    return AnalyticsAggregator(storage, storage, clock=lambda: FIXED_NOW)


@pytest.fixture
def client():
    """
    Provide a fresh TestClient with a new app instance.

    The context manager runs the app lifespan, so the recorder is stopped
    when the test ends.
    """
    app = create_app(settings=Settings(), storage=Storage())
    with TestClient(app) as c:
        yield c

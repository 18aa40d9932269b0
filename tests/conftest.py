"""
Shared fixtures for unit and integration tests.

Every fixture builds on ``InMemoryDocumentStore`` so tests run without a
database. ``RecordingDispatcher`` stands in for the notification
dispatcher and can be told to fail for chosen recipients.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional

import pytest
from prometheus_client import CollectorRegistry

from api.src.models.notifications import NotificationRecord
from api.src.repositories.memory_store import InMemoryDocumentStore
from api.src.services.channel_service import ChannelService
from api.src.services.fanout import FanoutCoordinator
from api.src.services.history import StatusHistory
from api.src.services.lifecycle_service import LifecycleService
from shared.metrics import LifecycleMetrics


# ============================================================================
# TEST DOUBLES
# ============================================================================


class RecordingDispatcher:
    """Notification dispatcher that records sends."""

    def __init__(self, fail_for: Iterable[str] = (), fail_all: bool = False, delay: float = 0.0):
        self.sent: List[NotificationRecord] = []
        self.fail_for = set(fail_for)
        self.fail_all = fail_all
        self.delay = delay

    async def send(
        self,
        recipient_id: str,
        title: str,
        body: str,
        category: str = "info",
        deep_link: Optional[str] = None,
    ) -> str:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_all or recipient_id in self.fail_for:
            raise RuntimeError(f"delivery to {recipient_id} failed")
        self.sent.append(NotificationRecord(recipient_id, title, body, category, deep_link))
        return f"notification-{len(self.sent)}"

    def recipients(self) -> List[str]:
        return [record.recipient_id for record in self.sent]


class SteppingClock:
    """Deterministic clock advancing one second per call."""

    def __init__(self, start: Optional[datetime] = None):
        self.current = start or datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


async def seed_providers(
    store: InMemoryDocumentStore,
    provider_type: str,
    user_ids: Iterable[str],
    approved: bool = True,
) -> None:
    """Register providers of one type."""
    for user_id in user_ids:
        await store.create(
            "providers",
            {"userId": user_id, "type": provider_type, "isApproved": approved},
        )


# ============================================================================
# FIXTURES
# ============================================================================


@pytest.fixture
def store():
    """Empty in-memory document store with a stepping clock."""
    return InMemoryDocumentStore(clock=SteppingClock())


@pytest.fixture
def dispatcher():
    """Recording notification dispatcher."""
    return RecordingDispatcher()


@pytest.fixture
def registry():
    """Isolated Prometheus registry."""
    return CollectorRegistry()


@pytest.fixture
def metrics(registry):
    """Lifecycle metrics on an isolated registry."""
    return LifecycleMetrics(registry)


@pytest.fixture
def channels(store):
    """Channel service over the test store."""
    return ChannelService(store)


@pytest.fixture
def fanout(dispatcher, store, metrics):
    """Fan-out coordinator with a short send timeout."""
    return FanoutCoordinator(dispatcher, store, timeout_seconds=0.5, metrics=metrics)


@pytest.fixture
def history(store):
    """Status history log over the test store."""
    return StatusHistory(store)


@pytest.fixture
def lifecycle(store, fanout, channels, history, metrics):
    """Lifecycle engine wired over the test store."""
    return LifecycleService(
        store,
        fanout,
        channels,
        history=history,
        metrics=metrics,
        channel_timeout_seconds=0.5,
    )

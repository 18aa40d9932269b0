"""
Integration tests for the MongoDB document store.

Tests cover:
- Document CRUD with string ids and store-assigned timestamps
- Conditional updates (provider assignment precondition)
- Equality filters on null fields, sorting and limits
- The lifecycle engine end to end over MongoDB

These tests use testcontainers to spin up a real MongoDB instance and are
skipped when Docker is not available.
"""

import asyncio
import uuid

import pytest
import pytest_asyncio

from api.src.errors import ProviderConflictError, RequestNotFoundError
from api.src.repositories.document_store import SERVER_TIMESTAMP, DocumentNotFound
from api.src.repositories.mongo_store import MongoDocumentStore
from api.src.services.channel_service import ChannelService
from api.src.services.fanout import FanoutCoordinator
from api.src.services.history import StatusHistory
from api.src.services.lifecycle_service import LifecycleService
from api.src.services.notification_service import NotificationService
from mongo_container import get_mongodb_container, stop_mongodb_container

pytestmark = pytest.mark.integration


# ============================================================================
# FIXTURES
# ============================================================================


@pytest.fixture(scope="module")
def mongodb_url():
    """Connection URL of a running MongoDB container."""
    try:
        container = get_mongodb_container()
    except Exception as e:
        pytest.skip(f"Docker is not available: {e}")
    yield container.get_connection_url()
    stop_mongodb_container()


@pytest_asyncio.fixture
async def mongo_store(mongodb_url):
    """MongoDB store on a fresh database per test."""
    store = MongoDocumentStore.from_url(mongodb_url, f"srq_test_{uuid.uuid4().hex[:8]}")
    yield store
    await store.client.drop_database(store.db.name)
    await store.close()


# ============================================================================
# DOCUMENT STORE
# ============================================================================


class TestMongoDocumentStore:
    """Tests for MongoDocumentStore."""

    @pytest.mark.asyncio
    async def test_ping(self, mongo_store):
        await mongo_store.ping()

    @pytest.mark.asyncio
    async def test_create_and_get(self, mongo_store):
        doc_id = await mongo_store.create("things", {"name": "a", "seenAt": SERVER_TIMESTAMP})

        document = await mongo_store.get("things", doc_id)

        assert document["id"] == doc_id
        assert document["name"] == "a"
        assert document["createdAt"] is not None
        assert document["seenAt"] == document["createdAt"]
        assert "_id" not in document

    @pytest.mark.asyncio
    @pytest.mark.parametrize("doc_id", ["not-an-object-id", "65f000000000000000000000"])
    async def test_missing_documents(self, mongo_store, doc_id):
        with pytest.raises(DocumentNotFound):
            await mongo_store.get("things", doc_id)
        with pytest.raises(DocumentNotFound):
            await mongo_store.update("things", doc_id, {"name": "b"})
        with pytest.raises(DocumentNotFound):
            await mongo_store.delete("things", doc_id)

    @pytest.mark.asyncio
    async def test_conditional_update(self, mongo_store):
        doc_id = await mongo_store.create("things", {"providerId": None, "status": "Pending"})

        first = await mongo_store.update(
            "things", doc_id, {"providerId": "P1"}, expect={"providerId": None}
        )
        second = await mongo_store.update(
            "things", doc_id, {"providerId": "P2"}, expect={"providerId": None}
        )

        assert first is True
        assert second is False
        assert (await mongo_store.get("things", doc_id))["providerId"] == "P1"

    @pytest.mark.asyncio
    async def test_create_if_absent_under_concurrency(self, mongo_store):
        results = await asyncio.gather(*(
            mongo_store.create_if_absent("pairs", {"participantKey": "a|b"}, {"n": n})
            for n in range(5)
        ))

        assert len({doc_id for doc_id, _ in results}) == 1
        assert [created for _, created in results].count(True) == 1
        documents = await mongo_store.query("pairs")
        assert len(documents) == 1
        assert documents[0]["participantKey"] == "a|b"

    @pytest.mark.asyncio
    async def test_query_filters_sort_and_limit(self, mongo_store):
        for rank in (2, 3, 1):
            await mongo_store.create("things", {"rank": rank, "owner": None})
        await mongo_store.create("things", {"rank": 4, "owner": "u1"})

        unowned = await mongo_store.query("things", {"owner": None}, order_by="rank", descending=True)
        top = await mongo_store.query("things", order_by="rank", limit=1)

        assert [document["rank"] for document in unowned] == [3, 2, 1]
        assert [document["rank"] for document in top] == [1]

    @pytest.mark.asyncio
    async def test_delete(self, mongo_store):
        doc_id = await mongo_store.create("things", {"name": "a"})

        await mongo_store.delete("things", doc_id)

        assert await mongo_store.query("things") == []


# ============================================================================
# LIFECYCLE OVER MONGODB
# ============================================================================


class TestLifecycleOverMongo:
    """End-to-end lifecycle flow over MongoDB."""

    @pytest.fixture
    def engine(self, mongo_store):
        notifications = NotificationService(mongo_store)
        fanout = FanoutCoordinator(notifications, mongo_store)
        return LifecycleService(
            mongo_store,
            fanout,
            ChannelService(mongo_store),
            history=StatusHistory(mongo_store),
        ), notifications

    @pytest.mark.asyncio
    async def test_create_accept_complete(self, engine):
        lifecycle, notifications = engine
        payload = {"requesterId": "u1", "serviceCategory": "Painting", "budget": "50000"}

        request_id = await lifecycle.create("renovation", payload)
        await lifecycle.update_status("renovation", request_id, "Accepted", acting_provider_id="P1")
        with pytest.raises(ProviderConflictError):
            await lifecycle.update_status("renovation", request_id, "Accepted", acting_provider_id="P2")
        await lifecycle.update_status("renovation", request_id, "In Progress", progress_note="Started")
        await lifecycle.update_status("renovation", request_id, "Completed")

        request = await lifecycle.get_by_id("renovation", request_id)
        assert request.status == "Completed"
        assert request.provider_id == "P1"
        assert request.channel_id is not None
        assert request.details["budget"] == 50000
        history = await lifecycle.list_history("renovation", request_id)
        assert len(history) == 4
        assert {entry.status for entry in history} == {"Pending", "Accepted", "In Progress", "Completed"}
        assert len(await notifications.list_for_user("u1")) == 4

    @pytest.mark.asyncio
    async def test_unknown_request(self, engine):
        lifecycle, _ = engine

        with pytest.raises(RequestNotFoundError):
            await lifecycle.get_by_id("rental", "not-an-object-id")

"""
Unit tests for the notification service.

Tests cover:
- Storing addressed notifications
- Inbox listing and unread filtering
- Read flags, unread counts, deletion
"""

from unittest.mock import AsyncMock, Mock

import pytest

from api.src.errors import StoreUnavailableError
from api.src.repositories.document_store import DocumentNotFound
from api.src.services.notification_service import NotificationService


@pytest.fixture
def notifications(store):
    """Notification service over the test store."""
    return NotificationService(store)


class TestSend:
    """Tests for send."""

    @pytest.mark.asyncio
    async def test_send_stores_unread_notification(self, notifications, store):
        notification_id = await notifications.send(
            "u1", "Order Placed", "Your order was placed", "success", "/orders/1"
        )

        stored = await store.get("notifications", notification_id)
        assert stored["userId"] == "u1"
        assert stored["title"] == "Order Placed"
        assert stored["message"] == "Your order was placed"
        assert stored["type"] == "success"
        assert stored["link"] == "/orders/1"
        assert stored["read"] is False
        assert stored["createdAt"] is not None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("recipient, title, body", [
        ("", "t", "b"),
        ("u1", "", "b"),
        ("u1", "t", ""),
    ])
    async def test_send_rejects_empty_fields(self, notifications, recipient, title, body):
        with pytest.raises(ValueError):
            await notifications.send(recipient, title, body)


class TestInbox:
    """Tests for inbox operations."""

    @pytest.mark.asyncio
    async def test_list_newest_first(self, notifications):
        await notifications.send("u1", "first", "body")
        await notifications.send("u2", "other", "body")
        await notifications.send("u1", "second", "body")

        inbox = await notifications.list_for_user("u1")

        assert [notification.title for notification in inbox] == ["second", "first"]
        assert all(notification.user_id == "u1" for notification in inbox)

    @pytest.mark.asyncio
    async def test_mark_as_read_and_unread_filter(self, notifications):
        read_id = await notifications.send("u1", "read me", "body")
        await notifications.send("u1", "leave me", "body")

        await notifications.mark_as_read(read_id)

        unread = await notifications.list_for_user("u1", unread_only=True)
        assert [notification.title for notification in unread] == ["leave me"]
        assert await notifications.unread_count("u1") == 1

    @pytest.mark.asyncio
    async def test_mark_missing_as_read_raises(self, notifications):
        with pytest.raises(DocumentNotFound):
            await notifications.mark_as_read("missing")

    @pytest.mark.asyncio
    async def test_mark_all_as_read(self, notifications):
        for n in range(3):
            await notifications.send("u1", f"n{n}", "body")
        await notifications.send("u2", "other", "body")

        assert await notifications.mark_all_as_read("u1") == 3
        assert await notifications.unread_count("u1") == 0
        assert await notifications.unread_count("u2") == 1

    @pytest.mark.asyncio
    async def test_unread_count_is_zero_when_store_fails(self):
        store = Mock()
        store.query = AsyncMock(side_effect=StoreUnavailableError())

        assert await NotificationService(store).unread_count("u1") == 0

    @pytest.mark.asyncio
    async def test_delete_and_clear_all(self, notifications):
        doomed = await notifications.send("u1", "a", "body")
        await notifications.send("u1", "b", "body")
        await notifications.send("u1", "c", "body")

        await notifications.delete(doomed)
        assert len(await notifications.list_for_user("u1")) == 2

        assert await notifications.clear_all("u1") == 2
        assert await notifications.list_for_user("u1") == []

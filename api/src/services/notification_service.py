"""
Notification service.

Stores addressed notifications in the notifications collection and serves
each user's inbox: listing, read flags and the unread badge count.
"""

from typing import List, Optional

import structlog

from api.src.errors import ServiceRequestError
from api.src.models.notifications import Notification, NotificationCategory
from api.src.repositories.document_store import (
    CREATED_AT,
    SERVER_TIMESTAMP,
    DocumentStore,
)

logger = structlog.get_logger(__name__)


class NotificationService:
    """Notification dispatcher and inbox over a document store."""

    def __init__(self, store: DocumentStore, collection: str = "notifications"):
        """
        Initialize notification service.

        Args:
            store: Document store
            collection: Notifications collection name
        """
        self.store = store
        self.collection = collection

    async def send(
        self,
        recipient_id: str,
        title: str,
        body: str,
        category: str = NotificationCategory.INFO,
        deep_link: Optional[str] = None,
    ) -> str:
        """
        Store one notification for a recipient.

        Args:
            recipient_id: User receiving the notification
            title: Short title
            body: Message body
            category: Notification type label
            deep_link: Frontend route opened from the notification

        Returns:
            Notification id

        Raises:
            ValueError: If recipient, title or body is empty
        """
        if not recipient_id or not title or not body:
            raise ValueError("recipient_id, title and body are required")

        notification_id = await self.store.create(
            self.collection,
            {
                "userId": recipient_id,
                "title": title,
                "message": body,
                "type": category,
                "link": deep_link,
                "read": False,
            },
        )
        logger.debug(
            "notification_stored",
            notification_id=notification_id,
            recipient_id=recipient_id,
            category=category,
        )
        return notification_id

    async def list_for_user(self, user_id: str, unread_only: bool = False) -> List[Notification]:
        """List a user's notifications, newest first."""
        filters = {"userId": user_id}
        if unread_only:
            filters["read"] = False
        documents = await self.store.query(
            self.collection, filters=filters, order_by=CREATED_AT, descending=True
        )
        return [Notification.model_validate(document) for document in documents]

    async def mark_as_read(self, notification_id: str) -> None:
        """
        Mark one notification as read.

        Raises:
            DocumentNotFound: If the notification does not exist
        """
        await self.store.update(
            self.collection, notification_id, {"read": True, "readAt": SERVER_TIMESTAMP}
        )

    async def mark_all_as_read(self, user_id: str) -> int:
        """
        Mark every unread notification of a user as read.

        Returns:
            Number of notifications updated
        """
        unread = await self.store.query(self.collection, filters={"userId": user_id, "read": False})
        for document in unread:
            await self.store.update(
                self.collection, document["id"], {"read": True, "readAt": SERVER_TIMESTAMP}
            )
        logger.info("notifications_marked_read", user_id=user_id, count=len(unread))
        return len(unread)

    async def unread_count(self, user_id: str) -> int:
        """
        Count a user's unread notifications.

        Store failures yield 0 so badge rendering never breaks.
        """
        try:
            unread = await self.store.query(
                self.collection, filters={"userId": user_id, "read": False}
            )
        except ServiceRequestError as e:
            logger.warning("unread_count_failed", user_id=user_id, error=str(e))
            return 0
        return len(unread)

    async def delete(self, notification_id: str) -> None:
        """
        Delete one notification.

        Raises:
            DocumentNotFound: If the notification does not exist
        """
        await self.store.delete(self.collection, notification_id)

    async def clear_all(self, user_id: str) -> int:
        """
        Delete every notification of a user.

        Returns:
            Number of notifications deleted
        """
        documents = await self.store.query(self.collection, filters={"userId": user_id})
        for document in documents:
            await self.store.delete(self.collection, document["id"])
        logger.info("notifications_cleared", user_id=user_id, count=len(documents))
        return len(documents)

"""
Channel service.

Provisions the two-party chat channel linking a requester and the
provider assigned to their request. Channels are keyed by the unordered
participant pair and inserted with a keyed, atomic write, so provisioning
is idempotent even under concurrent calls.
"""

from typing import Any, Dict, List

import structlog

from api.src.errors import ServiceRequestError
from api.src.repositories.document_store import SERVER_TIMESTAMP, DocumentNotFound, DocumentStore

logger = structlog.get_logger(__name__)

DEFAULT_DISPLAY_NAME = "User"
DEFAULT_ROLE = "user"

# Stored role name -> role shown in chat headers.
ROLE_ALIASES = {"constructor": "contractor"}


def participant_key(party_a: str, party_b: str) -> str:
    """Canonical key of an unordered participant pair."""
    return "|".join(sorted((party_a, party_b)))


class ChannelService:
    """Chat channel provisioner over a document store."""

    def __init__(
        self,
        store: DocumentStore,
        collection: str = "chats",
        users_collection: str = "users",
    ):
        """
        Initialize channel service.

        Args:
            store: Document store
            collection: Chat channels collection name
            users_collection: Users collection used for participant details
        """
        self.store = store
        self.collection = collection
        self.users_collection = users_collection

    async def _participant_details(self, user_id: str) -> Dict[str, Any]:
        try:
            user = await self.store.get(self.users_collection, user_id)
        except DocumentNotFound:
            user = {}
        except ServiceRequestError as e:
            logger.warning("participant_lookup_failed", user_id=user_id, error=str(e))
            user = {}

        role = user.get("role") or DEFAULT_ROLE
        return {
            "name": user.get("displayName") or user.get("name") or DEFAULT_DISPLAY_NAME,
            "photoURL": user.get("photoURL"),
            "role": ROLE_ALIASES.get(role, role),
        }

    async def get_or_create(self, party_a: str, party_b: str) -> str:
        """
        Return the channel between two parties, creating it if needed.

        Args:
            party_a: First participant id
            party_b: Second participant id

        Returns:
            Channel id

        Raises:
            ValueError: If an id is empty or both ids are the same
        """
        if not party_a or not party_b:
            raise ValueError("Both participant ids are required")
        if party_a == party_b:
            raise ValueError("A channel needs two distinct participants")

        key = participant_key(party_a, party_b)
        existing = await self.store.query(self.collection, filters={"participantKey": key}, limit=1)
        if existing:
            logger.debug("channel_reused", channel_id=existing[0]["id"], participant_key=key)
            return existing[0]["id"]

        participants: List[str] = sorted((party_a, party_b))
        details = {user_id: await self._participant_details(user_id) for user_id in participants}
        channel_id, created = await self.store.create_if_absent(
            self.collection,
            {"participantKey": key},
            {
                "participants": participants,
                "participantDetails": details,
                "lastMessage": "",
                "lastMessageTime": SERVER_TIMESTAMP,
                "unreadFor": [],
            },
        )
        if created:
            logger.info("channel_created", channel_id=channel_id, participant_key=key)
        else:
            logger.debug("channel_reused", channel_id=channel_id, participant_key=key)
        return channel_id

"""
Document store adapter contract.

The lifecycle engine never talks to a database driver directly. It is
handed a ``DocumentStore`` at construction time: a collection-scoped
create/read/update/delete interface with equality-filtered, sorted
queries and store-assigned timestamps. Two implementations ship with the
service:

- ``MongoDocumentStore`` (``api.src.repositories.mongo_store``)
- ``InMemoryDocumentStore`` (``api.src.repositories.memory_store``)
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple


class _ServerTimestamp:
    """Sentinel replaced by the store's current time at write time."""

    _instance: Optional["_ServerTimestamp"] = None

    def __new__(cls) -> "_ServerTimestamp":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()

CREATED_AT = "createdAt"
UPDATED_AT = "updatedAt"


class DocumentNotFound(Exception):
    """Raised when a point operation targets a missing document."""

    def __init__(self, collection: str, doc_id: str):
        super().__init__(f"Document {doc_id} not found in {collection}")
        self.collection = collection
        self.doc_id = doc_id


def resolve_server_timestamps(data: Mapping[str, Any], now: datetime) -> Dict[str, Any]:
    """
    Replace ``SERVER_TIMESTAMP`` sentinels with the write time.

    Args:
        data: Field values about to be written
        now: Timestamp assigned by the store for this write

    Returns:
        New dictionary safe to persist
    """
    return {
        key: (now if value is SERVER_TIMESTAMP else value)
        for key, value in data.items()
    }


class DocumentStore(ABC):
    """Abstract, injectable document store."""

    @abstractmethod
    async def ping(self) -> None:
        """
        Check that the store is reachable.

        Raises:
            StoreUnavailableError: If the store cannot be reached
        """

    @abstractmethod
    async def create(self, collection: str, data: Mapping[str, Any]) -> str:
        """
        Insert a whole document atomically.

        ``createdAt`` and ``updatedAt`` are assigned by the store.

        Args:
            collection: Collection name
            data: Document fields (without id)

        Returns:
            Store-assigned document id
        """

    @abstractmethod
    async def create_if_absent(
        self,
        collection: str,
        key: Mapping[str, Any],
        data: Mapping[str, Any],
    ) -> Tuple[str, bool]:
        """
        Insert a document unless one already matches ``key``.

        The lookup and the insert are one atomic step: concurrent calls
        with the same key yield one document.

        Args:
            collection: Collection name
            key: Equality match identifying the document (stored with it)
            data: Remaining fields of a newly inserted document

        Returns:
            Tuple of (document id, whether it was inserted)
        """

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> Dict[str, Any]:
        """
        Read one document.

        Args:
            collection: Collection name
            doc_id: Document id

        Returns:
            Document fields including ``id``

        Raises:
            DocumentNotFound: If no document has this id
        """

    @abstractmethod
    async def update(
        self,
        collection: str,
        doc_id: str,
        changes: Mapping[str, Any],
        expect: Optional[Mapping[str, Any]] = None,
    ) -> bool:
        """
        Apply a partial update to one document atomically.

        ``updatedAt`` is refreshed by the store.

        Args:
            collection: Collection name
            doc_id: Document id
            changes: Fields to set
            expect: Equality precondition evaluated atomically with the write

        Returns:
            True if written, False if the precondition did not hold

        Raises:
            DocumentNotFound: If no document has this id
        """

    @abstractmethod
    async def delete(self, collection: str, doc_id: str) -> None:
        """
        Delete one document.

        Raises:
            DocumentNotFound: If no document has this id
        """

    @abstractmethod
    async def query(
        self,
        collection: str,
        filters: Optional[Mapping[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        Run an equality-filtered, optionally sorted query.

        A ``None`` filter value matches documents where the field is null
        or absent.

        Args:
            collection: Collection name
            filters: Field -> required value
            order_by: Field to sort on
            descending: Sort direction
            limit: Maximum number of documents

        Returns:
            Matching documents (each including ``id``); empty when none match
        """

    async def close(self) -> None:
        """Release driver resources."""
        return None

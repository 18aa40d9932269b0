"""
In-memory document store.

Dict-backed implementation of ``DocumentStore`` used by the test suite
and by ``store_backend=memory`` for local development. Writes are
whole-document and happen without an intervening await, so each one is
atomic with respect to other coroutines on the same event loop.
"""

import copy
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple
from uuid import uuid4

import structlog

from api.src.errors import StoreUnavailableError
from api.src.repositories.document_store import (
    CREATED_AT,
    UPDATED_AT,
    DocumentNotFound,
    DocumentStore,
    resolve_server_timestamps,
)

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryDocumentStore(DocumentStore):
    """Document store kept in process memory."""

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        """
        Initialize the store.

        Args:
            clock: Source of "now"; defaults to the UTC wall clock
        """
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._clock = clock or _utcnow
        self._last_timestamp: Optional[datetime] = None
        self.available = True

    def _now(self) -> datetime:
        # Strictly increasing so createdAt ordering is stable within a test.
        now = self._clock()
        if self._last_timestamp is not None and now <= self._last_timestamp:
            now = self._last_timestamp + timedelta(microseconds=1)
        self._last_timestamp = now
        return now

    def _check_available(self) -> None:
        if not self.available:
            raise StoreUnavailableError()

    def _collection(self, name: str) -> Dict[str, Dict[str, Any]]:
        return self._collections.setdefault(name, {})

    @staticmethod
    def _with_id(doc_id: str, data: Mapping[str, Any]) -> Dict[str, Any]:
        document = copy.deepcopy(dict(data))
        document["id"] = doc_id
        return document

    async def ping(self) -> None:
        self._check_available()

    def _insert(self, collection: str, data: Mapping[str, Any]) -> str:
        now = self._now()
        document = resolve_server_timestamps(data, now)
        document.pop("id", None)
        document[CREATED_AT] = now
        document[UPDATED_AT] = now

        doc_id = uuid4().hex
        self._collection(collection)[doc_id] = copy.deepcopy(document)
        logger.debug("memory_document_created", collection=collection, doc_id=doc_id)
        return doc_id

    async def create(self, collection: str, data: Mapping[str, Any]) -> str:
        self._check_available()
        return self._insert(collection, data)

    async def create_if_absent(
        self,
        collection: str,
        key: Mapping[str, Any],
        data: Mapping[str, Any],
    ) -> Tuple[str, bool]:
        self._check_available()
        for doc_id, document in self._collection(collection).items():
            if all(document.get(field) == value for field, value in key.items()):
                return doc_id, False
        return self._insert(collection, {**data, **key}), True

    async def get(self, collection: str, doc_id: str) -> Dict[str, Any]:
        self._check_available()
        document = self._collection(collection).get(doc_id)
        if document is None:
            raise DocumentNotFound(collection, doc_id)
        return self._with_id(doc_id, document)

    async def update(
        self,
        collection: str,
        doc_id: str,
        changes: Mapping[str, Any],
        expect: Optional[Mapping[str, Any]] = None,
    ) -> bool:
        self._check_available()
        documents = self._collection(collection)
        document = documents.get(doc_id)
        if document is None:
            raise DocumentNotFound(collection, doc_id)

        if expect and any(document.get(key) != value for key, value in expect.items()):
            return False

        now = self._now()
        updated = dict(document)
        updated.update(resolve_server_timestamps(changes, now))
        updated.pop("id", None)
        updated[UPDATED_AT] = now
        documents[doc_id] = copy.deepcopy(updated)
        return True

    async def delete(self, collection: str, doc_id: str) -> None:
        self._check_available()
        documents = self._collection(collection)
        if doc_id not in documents:
            raise DocumentNotFound(collection, doc_id)
        del documents[doc_id]

    async def query(
        self,
        collection: str,
        filters: Optional[Mapping[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        self._check_available()
        filters = filters or {}
        matches = [
            self._with_id(doc_id, document)
            for doc_id, document in self._collection(collection).items()
            if all(document.get(key) == value for key, value in filters.items())
        ]

        if order_by:
            # Documents without the sort field go last in either direction.
            present = [doc for doc in matches if doc.get(order_by) is not None]
            missing = [doc for doc in matches if doc.get(order_by) is None]
            present.sort(key=lambda doc: doc[order_by], reverse=descending)
            matches = present + missing

        if limit is not None:
            matches = matches[:limit]
        return matches

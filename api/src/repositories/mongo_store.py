"""
MongoDB document store.

Implements ``DocumentStore`` over pymongo's asyncio client. Documents
are keyed by ``ObjectId`` and surfaced to the engine as string ids.
Timestamps are assigned here at write time; every write is a single
``insert_one``/``update_one`` so it is atomic per document. Keyed
inserts (``create_if_absent``) are upserts backed by a unique index.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple

import structlog
from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, DESCENDING, AsyncMongoClient
from pymongo.errors import ConnectionFailure, DuplicateKeyError

from api.src.errors import StoreUnavailableError
from api.src.repositories.document_store import (
    CREATED_AT,
    UPDATED_AT,
    DocumentNotFound,
    DocumentStore,
    resolve_server_timestamps,
)

logger = structlog.get_logger(__name__)


def _to_object_id(collection: str, doc_id: str) -> ObjectId:
    try:
        return ObjectId(doc_id)
    except (InvalidId, TypeError):
        raise DocumentNotFound(collection, doc_id)


def _from_mongo(document: Mapping[str, Any]) -> Dict[str, Any]:
    result = dict(document)
    result["id"] = str(result.pop("_id"))
    return result


class MongoDocumentStore(DocumentStore):
    """Document store backed by a MongoDB database."""

    def __init__(self, client: AsyncMongoClient, database: str):
        """
        Initialize MongoDB store.

        Args:
            client: pymongo asyncio client (created with ``tz_aware=True``)
            database: Database name
        """
        self.client = client
        self.db = client[database]
        self._unique_indexes: Set[Tuple[str, Tuple[str, ...]]] = set()

    @classmethod
    def from_url(
        cls,
        url: str,
        database: str,
        server_selection_timeout_ms: int = 5000,
    ) -> "MongoDocumentStore":
        """
        Build a store from a connection URL.

        The client connects lazily; use ``ping()`` to verify reachability.
        """
        client = AsyncMongoClient(
            url,
            tz_aware=True,
            serverSelectionTimeoutMS=server_selection_timeout_ms,
        )
        logger.info("mongodb_client_created", database=database, host=url.split("@")[-1])
        return cls(client, database)

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    async def ping(self) -> None:
        try:
            await self.client.admin.command("ping")
        except ConnectionFailure as e:
            logger.error("mongodb_ping_failed", error=str(e))
            raise StoreUnavailableError(f"MongoDB is not reachable: {e}")

    async def create(self, collection: str, data: Mapping[str, Any]) -> str:
        now = self._now()
        document = resolve_server_timestamps(data, now)
        document.pop("id", None)
        document[CREATED_AT] = now
        document[UPDATED_AT] = now
        try:
            result = await self.db[collection].insert_one(document)
        except ConnectionFailure as e:
            logger.error("mongodb_insert_failed", collection=collection, error=str(e))
            raise StoreUnavailableError(str(e))
        return str(result.inserted_id)

    async def _ensure_unique_index(self, collection: str, fields: Tuple[str, ...]) -> None:
        if (collection, fields) in self._unique_indexes:
            return
        await self.db[collection].create_index([(field, ASCENDING) for field in fields], unique=True)
        self._unique_indexes.add((collection, fields))
        logger.info("mongodb_unique_index_ensured", collection=collection, fields=list(fields))

    async def create_if_absent(
        self,
        collection: str,
        key: Mapping[str, Any],
        data: Mapping[str, Any],
    ) -> Tuple[str, bool]:
        now = self._now()
        document = resolve_server_timestamps(data, now)
        document.pop("id", None)
        for field in key:
            document.pop(field, None)
        document[CREATED_AT] = now
        document[UPDATED_AT] = now

        try:
            # Upserts on one key stay single only under a unique index.
            await self._ensure_unique_index(collection, tuple(sorted(key)))
            try:
                result = await self.db[collection].update_one(
                    dict(key), {"$setOnInsert": document}, upsert=True
                )
                if result.upserted_id is not None:
                    return str(result.upserted_id), True
            except DuplicateKeyError:
                logger.debug("mongodb_upsert_lost_race", collection=collection)
            existing = await self.db[collection].find_one(dict(key), projection={"_id": True})
        except ConnectionFailure as e:
            logger.error("mongodb_upsert_failed", collection=collection, error=str(e))
            raise StoreUnavailableError(str(e))
        return str(existing["_id"]), False

    async def get(self, collection: str, doc_id: str) -> Dict[str, Any]:
        object_id = _to_object_id(collection, doc_id)
        try:
            document = await self.db[collection].find_one({"_id": object_id})
        except ConnectionFailure as e:
            logger.error("mongodb_find_failed", collection=collection, error=str(e))
            raise StoreUnavailableError(str(e))
        if document is None:
            raise DocumentNotFound(collection, doc_id)
        return _from_mongo(document)

    async def update(
        self,
        collection: str,
        doc_id: str,
        changes: Mapping[str, Any],
        expect: Optional[Mapping[str, Any]] = None,
    ) -> bool:
        object_id = _to_object_id(collection, doc_id)
        now = self._now()
        fields = resolve_server_timestamps(changes, now)
        fields.pop("id", None)
        fields[UPDATED_AT] = now

        query: Dict[str, Any] = {"_id": object_id}
        if expect:
            query.update(expect)

        try:
            result = await self.db[collection].update_one(query, {"$set": fields})
            if result.matched_count:
                return True
            exists = await self.db[collection].count_documents({"_id": object_id}, limit=1)
        except ConnectionFailure as e:
            logger.error("mongodb_update_failed", collection=collection, error=str(e))
            raise StoreUnavailableError(str(e))

        if not exists:
            raise DocumentNotFound(collection, doc_id)
        return False

    async def delete(self, collection: str, doc_id: str) -> None:
        object_id = _to_object_id(collection, doc_id)
        try:
            result = await self.db[collection].delete_one({"_id": object_id})
        except ConnectionFailure as e:
            logger.error("mongodb_delete_failed", collection=collection, error=str(e))
            raise StoreUnavailableError(str(e))
        if result.deleted_count == 0:
            raise DocumentNotFound(collection, doc_id)

    async def query(
        self,
        collection: str,
        filters: Optional[Mapping[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        cursor = self.db[collection].find(dict(filters or {}))
        if order_by:
            cursor = cursor.sort(order_by, DESCENDING if descending else ASCENDING)
        if limit is not None:
            cursor = cursor.limit(limit)
        try:
            documents = await cursor.to_list(length=None)
        except ConnectionFailure as e:
            logger.error("mongodb_query_failed", collection=collection, error=str(e))
            raise StoreUnavailableError(str(e))
        return [_from_mongo(document) for document in documents]

    async def close(self) -> None:
        await self.client.close()
        logger.info("mongodb_client_closed")

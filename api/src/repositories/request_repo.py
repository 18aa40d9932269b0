"""
Service request repository.

One ``RequestRepository`` per kind, all sharing the same logic over the
injected document store. Point lookups that find nothing raise
``RequestNotFoundError``; list operations that match nothing return an
empty list.
"""

from typing import Any, Dict, List, Mapping, Optional

import structlog

from api.src.errors import RequestNotFoundError
from api.src.models.requests import ServiceRequest
from api.src.repositories.document_store import (
    CREATED_AT,
    DocumentNotFound,
    DocumentStore,
)
from api.src.services.kinds import KindConfig

logger = structlog.get_logger(__name__)


def _newest_first(requests: List[ServiceRequest]) -> List[ServiceRequest]:
    dated = [request for request in requests if request.created_at is not None]
    undated = [request for request in requests if request.created_at is None]
    dated.sort(key=lambda request: request.created_at, reverse=True)
    return dated + undated


class RequestRepository:
    """Repository for the requests of one kind."""

    def __init__(self, store: DocumentStore, config: KindConfig):
        """
        Initialize request repository.

        Args:
            store: Document store
            config: Configuration of the kind this repository serves
        """
        self.store = store
        self.config = config

    @property
    def collection(self) -> str:
        return self.config.collection

    def _not_found(self, request_id: str) -> RequestNotFoundError:
        return RequestNotFoundError(self.config.kind.value, request_id)

    async def create(self, document: Mapping[str, Any]) -> str:
        """
        Persist a new request document in a single write.

        Returns:
            Store-assigned request id
        """
        request_id = await self.store.create(self.collection, document)
        logger.debug("request_document_created", kind=self.config.kind.value, request_id=request_id)
        return request_id

    async def get_by_id(self, request_id: str) -> ServiceRequest:
        """
        Get a request by id.

        Raises:
            RequestNotFoundError: If no request has this id
        """
        try:
            document = await self.store.get(self.collection, request_id)
        except DocumentNotFound:
            raise self._not_found(request_id)
        return ServiceRequest.from_document(document)

    async def update(
        self,
        request_id: str,
        changes: Mapping[str, Any],
        expect: Optional[Mapping[str, Any]] = None,
    ) -> bool:
        """
        Apply a partial update in a single write.

        Returns:
            True if written, False if ``expect`` did not hold

        Raises:
            RequestNotFoundError: If no request has this id
        """
        try:
            return await self.store.update(self.collection, request_id, changes, expect=expect)
        except DocumentNotFound:
            raise self._not_found(request_id)

    async def delete(self, request_id: str) -> None:
        """
        Delete a request.

        Raises:
            RequestNotFoundError: If no request has this id
        """
        try:
            await self.store.delete(self.collection, request_id)
        except DocumentNotFound:
            raise self._not_found(request_id)
        logger.info("request_deleted", kind=self.config.kind.value, request_id=request_id)

    async def _query(self, filters: Optional[Dict[str, Any]] = None) -> List[ServiceRequest]:
        documents = await self.store.query(
            self.collection,
            filters=filters,
            order_by=CREATED_AT,
            descending=True,
        )
        return [ServiceRequest.from_document(document) for document in documents]

    async def get_by_user(self, requester_id: str) -> List[ServiceRequest]:
        """List a requester's requests, newest first."""
        return await self._query({"requesterId": requester_id})

    async def get_by_provider(self, provider_id: str) -> List[ServiceRequest]:
        """
        List a provider's queue, newest first.

        The queue is the union of requests assigned to the provider and
        open requests still in the initial status. Each entry is marked
        with ``is_assigned``.
        """
        assigned = await self._query({"providerId": provider_id})
        open_requests = await self._query(
            {"providerId": None, "status": self.config.initial_status}
        )

        merged: Dict[str, ServiceRequest] = {}
        for request in assigned:
            merged[request.id] = request.model_copy(update={"is_assigned": True})
        for request in open_requests:
            if request.id not in merged:
                merged[request.id] = request.model_copy(update={"is_assigned": False})
        return _newest_first(list(merged.values()))

    async def get_all(self) -> List[ServiceRequest]:
        """List every request of this kind, newest first."""
        return await self._query()

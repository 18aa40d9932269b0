"""
Status history log.

Appends one entry per successful create and status transition to the
kind's ``{collection}Updates`` collection. Recording is best-effort: the
primary write has already been committed when an entry is appended.
"""

from typing import List, Optional

import structlog

from api.src.models.requests import HistoryEntry
from api.src.repositories.document_store import CREATED_AT, DocumentStore
from api.src.services.kinds import KindConfig

logger = structlog.get_logger(__name__)


class StatusHistory:
    """Per-request status history over a document store."""

    def __init__(self, store: DocumentStore, enabled: bool = True):
        self.store = store
        self.enabled = enabled

    async def record(
        self,
        config: KindConfig,
        request_id: str,
        status: str,
        updated_by: Optional[str] = None,
        note: Optional[str] = None,
    ) -> Optional[str]:
        """
        Append a history entry.

        Failures are logged and swallowed.

        Returns:
            Entry id, or None if disabled or the write failed
        """
        if not self.enabled:
            return None
        try:
            entry_id = await self.store.create(
                config.history_collection,
                {
                    "requestId": request_id,
                    "kind": config.kind.value,
                    "status": status,
                    "updatedBy": updated_by,
                    "note": note or "",
                },
            )
        except Exception as e:
            logger.warning(
                "history_entry_failed",
                kind=config.kind.value,
                request_id=request_id,
                status=status,
                error=str(e),
            )
            return None
        return entry_id

    async def list(self, config: KindConfig, request_id: str) -> List[HistoryEntry]:
        """List a request's history entries, oldest first."""
        documents = await self.store.query(
            config.history_collection,
            filters={"requestId": request_id},
            order_by=CREATED_AT,
        )
        return [HistoryEntry.model_validate(document) for document in documents]

"""
Service request lifecycle engine.

One engine serves every request kind; the kind argument of each call
selects the ``KindConfig`` (statuses, transition graph, validation,
notification templates) and the matching repository.

Every operation commits its primary write first. Channel provisioning,
history entries and notifications follow as best-effort side effects:
their failures are logged and counted, never raised to the caller.
"""

import asyncio
import time
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Protocol, Union

import structlog
from pydantic import ValidationError

from api.src.errors import (
    IllegalTransitionError,
    InvalidFieldError,
    MissingFieldError,
    ProviderConflictError,
    ServiceRequestError,
)
from api.src.models.requests import (
    HistoryEntry,
    LifecycleEvent,
    RequestKind,
    ServiceRequest,
)
from api.src.repositories.document_store import SERVER_TIMESTAMP, DocumentStore
from api.src.repositories.request_repo import RequestRepository
from api.src.services.fanout import FanoutCoordinator
from api.src.services.history import StatusHistory
from api.src.services.identifiers import generate_human_id
from api.src.services.kinds import KIND_REGISTRY, KindConfig, get_kind_config
from api.src.services.validation import validate_payload
from shared.metrics import LifecycleMetrics

logger = structlog.get_logger(__name__)


class ChannelProvisioner(Protocol):
    """Anything that returns the channel shared by two parties."""

    async def get_or_create(self, party_a: str, party_b: str) -> str:
        ...


class LifecycleService:
    """Creates service requests and drives their status transitions."""

    def __init__(
        self,
        store: DocumentStore,
        fanout: FanoutCoordinator,
        channels: ChannelProvisioner,
        history: Optional[StatusHistory] = None,
        metrics: Optional[LifecycleMetrics] = None,
        default_currency: str = "PKR",
        channel_timeout_seconds: float = 5.0,
        id_factory: Callable[[str], str] = generate_human_id,
    ):
        """
        Initialize lifecycle service.

        Args:
            store: Document store holding every kind's requests
            fanout: Notification fan-out coordinator
            channels: Channel provisioner
            history: Status history log (disabled when None)
            metrics: Optional lifecycle metrics
            default_currency: Currency recorded on orders that omit one
            channel_timeout_seconds: Upper bound for one provisioning attempt
            id_factory: Human id generator, called with the kind prefix
        """
        self.store = store
        self.fanout = fanout
        self.channels = channels
        self.history = history
        self.metrics = metrics
        self.default_currency = default_currency
        self.channel_timeout_seconds = channel_timeout_seconds
        self.id_factory = id_factory

        self.repositories: Dict[RequestKind, RequestRepository] = {
            kind: RequestRepository(store, config) for kind, config in KIND_REGISTRY.items()
        }

    def repository(self, kind: Union[RequestKind, str]) -> RequestRepository:
        """
        Get the repository of a kind.

        Raises:
            UnknownKindError: If the kind is not registered
        """
        return self.repositories[get_kind_config(kind).kind]

    @contextmanager
    def _observe(self, config: KindConfig, operation: str) -> Iterator[None]:
        start = time.perf_counter()
        try:
            yield
        except ServiceRequestError as e:
            logger.warning(
                "lifecycle_operation_failed",
                kind=config.kind.value,
                operation=operation,
                error_code=e.error_code,
                error=e.message,
            )
            if self.metrics:
                self.metrics.errors.labels(kind=config.kind.value, error_code=e.error_code).inc()
            raise
        finally:
            if self.metrics:
                self.metrics.operation_duration.labels(
                    kind=config.kind.value, operation=operation
                ).observe(time.perf_counter() - start)

    # ========================================================================
    # Side effects
    # ========================================================================

    async def _provision_channel(
        self,
        config: KindConfig,
        request: ServiceRequest,
    ) -> Optional[str]:
        """Provision and link the requester/provider channel; best-effort."""
        try:
            channel_id = await asyncio.wait_for(
                self.channels.get_or_create(request.requester_id, request.provider_id),
                timeout=self.channel_timeout_seconds,
            )
            linked = await self.repository(config.kind).update(
                request.id, {"channelId": channel_id}, expect={"channelId": None}
            )
        except Exception as e:
            logger.warning(
                "channel_provision_failed",
                kind=config.kind.value,
                request_id=request.id,
                error=str(e) or type(e).__name__,
            )
            if self.metrics:
                self.metrics.channel_provisioning.labels(outcome="failed").inc()
            return None

        if not linked:
            logger.info("channel_already_linked", kind=config.kind.value, request_id=request.id)
            return None

        logger.info(
            "channel_linked",
            kind=config.kind.value,
            request_id=request.id,
            channel_id=channel_id,
        )
        if self.metrics:
            self.metrics.channel_provisioning.labels(outcome="linked").inc()
        return channel_id

    async def _notify(
        self,
        event: LifecycleEvent,
        request: ServiceRequest,
        config: KindConfig,
        progress_note: Optional[str] = None,
    ) -> None:
        try:
            await self.fanout.notify(event, request, config, progress_note)
        except Exception as e:
            logger.error(
                "notification_fanout_failed",
                kind=config.kind.value,
                request_id=request.id,
                event=event.value,
                error=str(e),
            )

    async def _after_write(
        self,
        config: KindConfig,
        event: LifecycleEvent,
        request: ServiceRequest,
        updated_by: Optional[str],
        progress_note: Optional[str],
        provision_channel: bool,
    ) -> None:
        if provision_channel:
            channel_id = await self._provision_channel(config, request)
            if channel_id:
                request = request.model_copy(update={"channel_id": channel_id})
        if self.history:
            await self.history.record(config, request.id, request.status, updated_by, progress_note)
        await self._notify(event, request, config, progress_note)

    # ========================================================================
    # Operations
    # ========================================================================

    async def create(self, kind: Union[RequestKind, str], payload: Mapping[str, Any]) -> str:
        """
        Validate and persist a new request, then run its side effects.

        Args:
            kind: Request kind
            payload: camelCase creation payload

        Returns:
            Store-assigned request id

        Raises:
            UnknownKindError: If the kind is not registered
            StoreUnavailableError: If the store cannot be reached
            MissingFieldError: If required fields are absent
            InvalidItemError: If a line item is invalid
            InvalidFieldError: If a numeric field or the category is unusable
        """
        config = get_kind_config(kind)
        repo = self.repository(config.kind)

        with self._observe(config, "create"):
            await self.store.ping()
            normalised = validate_payload(config, payload, self.default_currency)

            document = {
                "humanId": self.id_factory(config.id_prefix),
                "kind": config.kind.value,
                "requesterId": normalised.requester_id,
                "providerId": normalised.provider_id,
                "category": normalised.category,
                "details": normalised.details,
                "status": config.initial_status,
                "channelId": None,
                "progressNote": None,
                "lastProgressUpdate": None,
            }
            try:
                request = ServiceRequest.from_document({**document, "id": ""})
            except ValidationError as e:
                error = e.errors()[0]
                raise InvalidFieldError(
                    ".".join(str(part) for part in error["loc"]), error["msg"]
                )
            request_id = await repo.create(document)
            request = request.model_copy(update={"id": request_id})

        logger.info(
            "request_created",
            kind=config.kind.value,
            request_id=request_id,
            human_id=document["humanId"],
            requester_id=normalised.requester_id,
            provider_id=normalised.provider_id,
        )
        if self.metrics:
            self.metrics.requests_created.labels(kind=config.kind.value).inc()

        await self._after_write(
            config,
            LifecycleEvent.CREATED,
            request,
            updated_by=normalised.requester_id,
            progress_note=None,
            provision_channel=normalised.provider_id is not None,
        )
        return request_id

    async def update_status(
        self,
        kind: Union[RequestKind, str],
        request_id: str,
        new_status: str,
        acting_provider_id: Optional[str] = None,
        progress_note: Optional[str] = None,
    ) -> None:
        """
        Move a request to a new status.

        Accepting assigns ``acting_provider_id`` when no provider is set;
        the assignment is a conditional write, so of two concurrent accepts
        by different providers exactly one wins.

        Args:
            kind: Request kind
            request_id: Request id
            new_status: Target status label
            acting_provider_id: Provider performing the transition
            progress_note: Free-text update stored with the transition

        Raises:
            UnknownKindError: If the kind is not registered
            RequestNotFoundError: If the request does not exist
            IllegalTransitionError: If the transition is not in the graph
            MissingFieldError: If accepting without an acting provider
            ProviderConflictError: If another provider is already assigned
            StoreUnavailableError: If the store cannot be reached
        """
        config = get_kind_config(kind)
        repo = self.repository(config.kind)

        with self._observe(config, "update_status"):
            current = await repo.get_by_id(request_id)
            event = config.event_for(current.status, new_status)
            if event is None:
                raise IllegalTransitionError(current.status, new_status)

            changes: Dict[str, Any] = {"status": new_status}
            if progress_note:
                changes["progressNote"] = progress_note
                changes["lastProgressUpdate"] = SERVER_TIMESTAMP

            if event is LifecycleEvent.ACCEPTED:
                if not acting_provider_id:
                    raise MissingFieldError(["actingProviderId"])
                if current.provider_id is not None and current.provider_id != acting_provider_id:
                    raise ProviderConflictError(current.provider_id, acting_provider_id)

                if current.provider_id is None:
                    assigned = await repo.update(
                        request_id,
                        {**changes, "providerId": acting_provider_id},
                        expect={"providerId": None},
                    )
                    if not assigned:
                        # Lost a race with a concurrent accept.
                        current = await repo.get_by_id(request_id)
                        if current.provider_id != acting_provider_id:
                            raise ProviderConflictError(current.provider_id, acting_provider_id)
                        if config.event_for(current.status, new_status) is None:
                            raise IllegalTransitionError(current.status, new_status)
                        await repo.update(request_id, changes)
                else:
                    await repo.update(request_id, changes)
            else:
                await repo.update(request_id, changes)

        provider_id = current.provider_id or (
            acting_provider_id if event is LifecycleEvent.ACCEPTED else None
        )
        logger.info(
            "request_status_updated",
            kind=config.kind.value,
            request_id=request_id,
            from_status=current.status,
            to_status=new_status,
            event=event.value,
            provider_id=provider_id,
        )
        if self.metrics:
            self.metrics.transitions.labels(kind=config.kind.value, event=event.value).inc()

        updated = current.model_copy(
            update={
                "status": new_status,
                "provider_id": provider_id,
                "progress_note": progress_note or current.progress_note,
            }
        )
        await self._after_write(
            config,
            event,
            updated,
            updated_by=acting_provider_id,
            progress_note=progress_note,
            provision_channel=(
                event is LifecycleEvent.ACCEPTED
                and updated.channel_id is None
            ),
        )

    async def get_by_id(self, kind: Union[RequestKind, str], request_id: str) -> ServiceRequest:
        """
        Get one request.

        Raises:
            RequestNotFoundError: If the request does not exist
        """
        config = get_kind_config(kind)
        with self._observe(config, "get_by_id"):
            return await self.repository(config.kind).get_by_id(request_id)

    async def get_by_user(self, kind: Union[RequestKind, str], requester_id: str) -> List[ServiceRequest]:
        """List a requester's requests, newest first."""
        config = get_kind_config(kind)
        with self._observe(config, "get_by_user"):
            return await self.repository(config.kind).get_by_user(requester_id)

    async def get_by_provider(self, kind: Union[RequestKind, str], provider_id: str) -> List[ServiceRequest]:
        """List requests assigned to a provider plus open requests, newest first."""
        config = get_kind_config(kind)
        with self._observe(config, "get_by_provider"):
            return await self.repository(config.kind).get_by_provider(provider_id)

    async def get_all(self, kind: Union[RequestKind, str]) -> List[ServiceRequest]:
        """List every request of a kind, newest first."""
        config = get_kind_config(kind)
        with self._observe(config, "get_all"):
            return await self.repository(config.kind).get_all()

    async def delete(self, kind: Union[RequestKind, str], request_id: str) -> None:
        """
        Delete a request (administrative).

        Raises:
            RequestNotFoundError: If the request does not exist
        """
        config = get_kind_config(kind)
        with self._observe(config, "delete"):
            await self.repository(config.kind).delete(request_id)

    async def list_history(self, kind: Union[RequestKind, str], request_id: str) -> List[HistoryEntry]:
        """
        List a request's status history, oldest first.

        Raises:
            RequestNotFoundError: If the request does not exist
        """
        config = get_kind_config(kind)
        with self._observe(config, "list_history"):
            await self.repository(config.kind).get_by_id(request_id)
            if self.history is None:
                return []
            return await self.history.list(config, request_id)

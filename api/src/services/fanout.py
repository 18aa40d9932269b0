"""
Notification fan-out.

Maps a lifecycle event to the notifications it triggers and dispatches
them. Every send is an independent, time-bounded attempt: all attempts
are issued together and their outcomes collected into a ``FanoutReport``.
Nothing here raises into the lifecycle operation that triggered it.
"""

import asyncio
from typing import Any, Dict, List, Optional, Protocol

import structlog

from api.src.models.notifications import (
    DeliveryOutcome,
    FanoutReport,
    NotificationRecord,
)
from api.src.models.requests import LifecycleEvent, ServiceRequest
from api.src.repositories.document_store import DocumentStore
from api.src.services.kinds import CHAT_LINK, KindConfig, TemplateKey
from shared.metrics import LifecycleMetrics

logger = structlog.get_logger(__name__)


class NotificationDispatcher(Protocol):
    """Anything that can deliver one addressed notification."""

    async def send(
        self,
        recipient_id: str,
        title: str,
        body: str,
        category: str = ...,
        deep_link: Optional[str] = None,
    ) -> Any:
        ...


def _format_amount(value: Any) -> str:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return ""
    return f"{value:,}"


def render_context(
    request: ServiceRequest,
    config: KindConfig,
    progress_note: Optional[str] = None,
) -> Dict[str, Any]:
    """Placeholder values available to notification templates."""
    details = request.details
    return {
        "id": request.id,
        "human_id": request.human_id,
        "label": config.label,
        "category": request.category or config.label.lower(),
        "currency": details.get("currency", ""),
        "total": _format_amount(details.get("total")),
        "offer_amount": _format_amount(details.get("offerAmount")),
        "start_date": details.get("startDate", ""),
        "end_date": details.get("endDate", ""),
        "note": progress_note or "",
        "note_suffix": f" Update: {progress_note}" if progress_note else "",
    }


class FanoutCoordinator:
    """Plans and dispatches lifecycle notifications."""

    def __init__(
        self,
        dispatcher: NotificationDispatcher,
        store: DocumentStore,
        providers_collection: str = "providers",
        timeout_seconds: float = 5.0,
        metrics: Optional[LifecycleMetrics] = None,
    ):
        """
        Initialize fan-out coordinator.

        Args:
            dispatcher: Notification dispatcher
            store: Document store used to resolve broadcast recipients
            providers_collection: Providers collection name
            timeout_seconds: Upper bound for each send attempt
            metrics: Optional lifecycle metrics
        """
        self.dispatcher = dispatcher
        self.store = store
        self.providers_collection = providers_collection
        self.timeout_seconds = timeout_seconds
        self.metrics = metrics

    # ========================================================================
    # Planning
    # ========================================================================

    async def _approved_providers(self, provider_type: str) -> List[str]:
        documents = await self.store.query(
            self.providers_collection,
            filters={"type": provider_type, "isApproved": True},
        )
        recipients = []
        for document in documents:
            user_id = document.get("userId")
            if not user_id:
                logger.debug("provider_without_user_skipped", provider_id=document.get("id"))
                continue
            if user_id not in recipients:
                recipients.append(user_id)
        return recipients

    def _record(
        self,
        config: KindConfig,
        key: str,
        recipient_id: str,
        context: Dict[str, Any],
        deep_link: str,
    ) -> Optional[NotificationRecord]:
        template = config.templates.get(key)
        if template is None:
            logger.debug("notification_template_missing", kind=config.kind.value, template=key)
            return None
        title, body = template.render(context)
        return NotificationRecord(
            recipient_id=recipient_id,
            title=title,
            body=body,
            category=template.category,
            deep_link=deep_link,
        )

    async def plan(
        self,
        event: LifecycleEvent,
        request: ServiceRequest,
        config: KindConfig,
        progress_note: Optional[str] = None,
    ) -> List[NotificationRecord]:
        """
        Resolve the notifications a lifecycle event triggers.

        Args:
            event: Lifecycle event
            request: Request after the triggering write
            config: Kind configuration
            progress_note: Note posted with the transition

        Returns:
            Notification records, requester first
        """
        context = render_context(request, config, progress_note)
        requester_link = config.link_for_requester(request.id)
        chat_link = CHAT_LINK.format(channel_id=request.channel_id) if request.channel_id else None

        planned: List[Optional[NotificationRecord]] = []

        if event is LifecycleEvent.CREATED:
            planned.append(
                self._record(config, TemplateKey.CREATED_REQUESTER, request.requester_id, context, requester_link)
            )
            if request.provider_id:
                planned.append(
                    self._record(
                        config,
                        TemplateKey.CREATED_PROVIDER,
                        request.provider_id,
                        context,
                        chat_link or config.link_for_provider(request.id),
                    )
                )
            elif config.provider_type:
                try:
                    providers = await self._approved_providers(config.provider_type)
                except Exception as e:
                    logger.error(
                        "broadcast_recipients_lookup_failed",
                        kind=config.kind.value,
                        request_id=request.id,
                        error=str(e),
                    )
                    providers = []
                provider_link = config.link_for_provider(request.id)
                for provider_id in providers:
                    planned.append(
                        self._record(config, TemplateKey.CREATED_BROADCAST, provider_id, context, provider_link)
                    )
        elif event is LifecycleEvent.ACCEPTED:
            planned.append(
                self._record(config, event.value, request.requester_id, context, chat_link or requester_link)
            )
        else:
            planned.append(
                self._record(config, event.value, request.requester_id, context, requester_link)
            )

        return [record for record in planned if record is not None]

    # ========================================================================
    # Dispatch
    # ========================================================================

    async def _send(self, record: NotificationRecord) -> None:
        await asyncio.wait_for(
            self.dispatcher.send(
                record.recipient_id,
                record.title,
                record.body,
                record.category,
                record.deep_link,
            ),
            timeout=self.timeout_seconds,
        )

    async def dispatch(self, records: List[NotificationRecord]) -> FanoutReport:
        """
        Send every record concurrently and collect per-recipient outcomes.

        Never raises: failed and timed-out sends are logged and reported.
        """
        results = await asyncio.gather(
            *(self._send(record) for record in records),
            return_exceptions=True,
        )

        report = FanoutReport()
        for record, result in zip(records, results):
            if isinstance(result, BaseException):
                error = "timed out" if isinstance(result, asyncio.TimeoutError) else str(result) or type(result).__name__
                logger.warning(
                    "notification_send_failed",
                    recipient_id=record.recipient_id,
                    title=record.title,
                    error=error,
                )
                outcome = DeliveryOutcome(record.recipient_id, delivered=False, error=error)
            else:
                outcome = DeliveryOutcome(record.recipient_id, delivered=True)
            report.outcomes.append(outcome)

            if self.metrics:
                self.metrics.notifications.labels(
                    outcome="delivered" if outcome.delivered else "failed"
                ).inc()

        logger.info(
            "notifications_dispatched",
            attempted=report.attempted,
            delivered=report.delivered,
            failed=len(report.failed),
        )
        return report

    async def notify(
        self,
        event: LifecycleEvent,
        request: ServiceRequest,
        config: KindConfig,
        progress_note: Optional[str] = None,
    ) -> FanoutReport:
        """Plan and dispatch the notifications of one lifecycle event."""
        records = await self.plan(event, request, config, progress_note)
        return await self.dispatch(records)

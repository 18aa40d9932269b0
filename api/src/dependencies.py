"""
FastAPI dependency injection for the document store and services.

Provides:
- Construction of the document store selected by settings
- Construction of the service graph (notifications, channels, fan-out,
  history, lifecycle engine) over one store
- Injectable accessors reading the graph from ``app.state``

The store is always passed in explicitly, so tests can build the whole
graph over an ``InMemoryDocumentStore``.
"""

from dataclasses import dataclass
from typing import Optional

import structlog
from fastapi import Request

from api.src.config import Settings
from api.src.repositories.document_store import DocumentStore
from api.src.repositories.memory_store import InMemoryDocumentStore
from api.src.repositories.mongo_store import MongoDocumentStore
from api.src.services.channel_service import ChannelService
from api.src.services.fanout import FanoutCoordinator
from api.src.services.history import StatusHistory
from api.src.services.lifecycle_service import LifecycleService
from api.src.services.notification_service import NotificationService
from shared.metrics import LifecycleMetrics

logger = structlog.get_logger(__name__)


# ============================================================================
# DOCUMENT STORE
# ============================================================================


def build_store(settings: Settings) -> DocumentStore:
    """
    Build the document store selected by ``store_backend``.

    Args:
        settings: Application settings

    Returns:
        Document store instance
    """
    if settings.store_backend == "memory":
        logger.info("document_store_initialized", backend="memory")
        return InMemoryDocumentStore()

    store = MongoDocumentStore.from_url(
        settings.mongodb_url,
        settings.mongodb_database,
        server_selection_timeout_ms=settings.mongodb_server_selection_timeout_ms,
    )
    logger.info(
        "document_store_initialized",
        backend="mongodb",
        database=settings.mongodb_database,
    )
    return store


# ============================================================================
# SERVICES
# ============================================================================


@dataclass
class ServiceContainer:
    """Services sharing one document store."""

    store: DocumentStore
    notifications: NotificationService
    channels: ChannelService
    fanout: FanoutCoordinator
    history: StatusHistory
    lifecycle: LifecycleService


def build_services(
    settings: Settings,
    store: DocumentStore,
    metrics: Optional[LifecycleMetrics] = None,
) -> ServiceContainer:
    """
    Wire the service graph over a document store.

    Args:
        settings: Application settings
        store: Document store shared by every service
        metrics: Optional lifecycle metrics

    Returns:
        Service container
    """
    notifications = NotificationService(store, collection=settings.notifications_collection)
    channels = ChannelService(
        store,
        collection=settings.channels_collection,
        users_collection=settings.users_collection,
    )
    fanout = FanoutCoordinator(
        notifications,
        store,
        providers_collection=settings.providers_collection,
        timeout_seconds=settings.notification_timeout_seconds,
        metrics=metrics,
    )
    history = StatusHistory(store, enabled=settings.history_enabled)
    lifecycle = LifecycleService(
        store,
        fanout,
        channels,
        history=history,
        metrics=metrics,
        default_currency=settings.default_currency,
        channel_timeout_seconds=settings.channel_timeout_seconds,
    )
    return ServiceContainer(
        store=store,
        notifications=notifications,
        channels=channels,
        fanout=fanout,
        history=history,
        lifecycle=lifecycle,
    )


# ============================================================================
# REQUEST-SCOPED ACCESSORS
# ============================================================================


def get_services(request: Request) -> ServiceContainer:
    """
    Get the service container built at startup.

    Raises:
        RuntimeError: If the application has not started
    """
    services = getattr(request.app.state, "services", None)
    if services is None:
        logger.error("services_not_initialized")
        raise RuntimeError("Services not initialized. Start the application lifespan first.")
    return services


def get_lifecycle_service(request: Request) -> LifecycleService:
    """Get the lifecycle engine."""
    return get_services(request).lifecycle


def get_notification_service(request: Request) -> NotificationService:
    """Get the notification service."""
    return get_services(request).notifications

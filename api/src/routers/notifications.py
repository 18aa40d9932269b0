"""
Notification inbox router.

Provides REST API endpoints for listing a user's notifications, the
unread badge count, and read/delete housekeeping.
"""

from typing import Dict, List

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from api.src.dependencies import get_notification_service
from api.src.models.notifications import Notification, UnreadCountResponse
from api.src.models.requests import ErrorResponse
from api.src.repositories.document_store import DocumentNotFound
from api.src.services.notification_service import NotificationService

logger = structlog.get_logger(__name__)

router = APIRouter(
    prefix="/notifications",
    tags=["Notifications"],
    responses={
        503: {"model": ErrorResponse, "description": "Document store unavailable"},
    },
)


def _notification_not_found(notification_id: str) -> HTTPException:
    logger.info("notification_not_found", notification_id=notification_id)
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Notification not found: {notification_id}",
    )


@router.get("/{user_id}", response_model=List[Notification], summary="List Notifications")
async def list_notifications(
    user_id: str,
    unread_only: bool = Query(False, description="Only unread notifications"),
    notifications: NotificationService = Depends(get_notification_service),
) -> List[Notification]:
    return await notifications.list_for_user(user_id, unread_only=unread_only)


@router.get("/{user_id}/unread-count", response_model=UnreadCountResponse, summary="Unread Count")
async def unread_count(
    user_id: str,
    notifications: NotificationService = Depends(get_notification_service),
) -> UnreadCountResponse:
    return UnreadCountResponse(user_id=user_id, unread=await notifications.unread_count(user_id))


@router.post(
    "/{notification_id}/read",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Mark Notification Read",
    responses={404: {"model": ErrorResponse, "description": "Not Found"}},
)
async def mark_notification_read(
    notification_id: str,
    notifications: NotificationService = Depends(get_notification_service),
) -> Response:
    try:
        await notifications.mark_as_read(notification_id)
    except DocumentNotFound:
        raise _notification_not_found(notification_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{user_id}/read-all", summary="Mark All Notifications Read")
async def mark_all_read(
    user_id: str,
    notifications: NotificationService = Depends(get_notification_service),
) -> Dict[str, int]:
    return {"updated": await notifications.mark_all_as_read(user_id)}


@router.delete(
    "/{notification_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Notification",
    responses={404: {"model": ErrorResponse, "description": "Not Found"}},
)
async def delete_notification(
    notification_id: str,
    notifications: NotificationService = Depends(get_notification_service),
) -> Response:
    try:
        await notifications.delete(notification_id)
    except DocumentNotFound:
        raise _notification_not_found(notification_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/{user_id}/all", summary="Clear All Notifications")
async def clear_notifications(
    user_id: str,
    notifications: NotificationService = Depends(get_notification_service),
) -> Dict[str, int]:
    return {"deleted": await notifications.clear_all(user_id)}

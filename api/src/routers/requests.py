"""
Service request router.

Provides REST API endpoints for:
- Creating requests of any kind
- Listing requests by requester, by provider queue, or all
- Reading one request and its status history
- Status transitions (accept, start, progress notes, complete, reject)
- Administrative deletion

The ``kind`` path segment selects the request kind; unknown kinds are
answered with 404 ``UNKNOWN_KIND``. Identity is caller-supplied.
"""

from typing import Any, Dict, List, Optional

import structlog
from fastapi import APIRouter, Body, Depends, HTTPException, Query, Response, status

from api.src.dependencies import get_lifecycle_service
from api.src.models.requests import (
    CreatedResponse,
    ErrorResponse,
    HistoryEntry,
    ServiceRequest,
    StatusUpdateRequest,
)
from api.src.services.lifecycle_service import LifecycleService

logger = structlog.get_logger(__name__)

router = APIRouter(
    prefix="/requests",
    tags=["Service Requests"],
    responses={
        404: {"model": ErrorResponse, "description": "Unknown kind or request"},
        422: {"model": ErrorResponse, "description": "Validation Error"},
        503: {"model": ErrorResponse, "description": "Document store unavailable"},
    },
)


@router.post(
    "/{kind}",
    response_model=CreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create Request",
    description="""
    Create a request of the given kind.

    The request is persisted before any notification is sent; notification
    and channel provisioning failures never fail the call.

    **Error Responses:**
    - 404: Unknown kind
    - 422: Missing fields, invalid line item or non-numeric field
    - 503: Document store unavailable
    """,
)
async def create_request(
    kind: str,
    payload: Dict[str, Any] = Body(..., examples=[{
        "requesterId": "user-1",
        "serviceCategory": "Kitchen Remodel",
        "detailedDescription": "Replace cabinets and countertops",
        "budget": 250000,
    }]),
    lifecycle: LifecycleService = Depends(get_lifecycle_service),
) -> CreatedResponse:
    request_id = await lifecycle.create(kind, payload)
    return CreatedResponse(id=request_id)


@router.get(
    "/{kind}",
    response_model=List[ServiceRequest],
    summary="List Requests",
    description="""
    List requests of a kind, newest first.

    - `requester_id`: requests created by this user
    - `provider_id`: the provider's queue (assigned plus open requests)
    - neither: every request (administrative)
    """,
)
async def list_requests(
    kind: str,
    requester_id: Optional[str] = Query(None, min_length=1),
    provider_id: Optional[str] = Query(None, min_length=1),
    lifecycle: LifecycleService = Depends(get_lifecycle_service),
) -> List[ServiceRequest]:
    if requester_id and provider_id:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Filter by requester_id or provider_id, not both",
        )
    if requester_id:
        return await lifecycle.get_by_user(kind, requester_id)
    if provider_id:
        return await lifecycle.get_by_provider(kind, provider_id)
    return await lifecycle.get_all(kind)


@router.get(
    "/{kind}/{request_id}",
    response_model=ServiceRequest,
    summary="Get Request",
)
async def get_request(
    kind: str,
    request_id: str,
    lifecycle: LifecycleService = Depends(get_lifecycle_service),
) -> ServiceRequest:
    return await lifecycle.get_by_id(kind, request_id)


@router.get(
    "/{kind}/{request_id}/history",
    response_model=List[HistoryEntry],
    summary="Get Request History",
    description="Status history of a request, oldest first.",
)
async def get_request_history(
    kind: str,
    request_id: str,
    lifecycle: LifecycleService = Depends(get_lifecycle_service),
) -> List[HistoryEntry]:
    return await lifecycle.list_history(kind, request_id)


@router.patch(
    "/{kind}/{request_id}/status",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Update Request Status",
    description="""
    Move a request to a new status.

    Accepting requires `actingProviderId` and assigns that provider when
    none is assigned yet. A `progressNote` is stored with any legal
    transition.

    **Error Responses:**
    - 404: Unknown kind or request
    - 409: Illegal transition or another provider already assigned
    - 422: Accept without `actingProviderId`
    """,
    responses={409: {"model": ErrorResponse, "description": "Conflict"}},
)
async def update_request_status(
    kind: str,
    request_id: str,
    update: StatusUpdateRequest,
    lifecycle: LifecycleService = Depends(get_lifecycle_service),
) -> Response:
    await lifecycle.update_status(
        kind,
        request_id,
        update.status,
        acting_provider_id=update.acting_provider_id,
        progress_note=update.progress_note,
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete(
    "/{kind}/{request_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Request",
)
async def delete_request(
    kind: str,
    request_id: str,
    lifecycle: LifecycleService = Depends(get_lifecycle_service),
) -> Response:
    await lifecycle.delete(kind, request_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
